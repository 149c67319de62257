# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Waits for an image to become pullable from its registry.
"""
import math
import time
import logging
from typing import Callable

from tenacity import Retrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from .image_reference import ImageReference
from ..MODELS.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30 * 60.0
DEFAULT_INTERVAL = 5.0


def max_attempts(timeout: float, interval: float) -> int:
    """Number of checks that fit in the timeout at the given interval."""
    if timeout <= 0 or interval <= 0:
        raise ConfigError(
            f"Image check timeout and interval must be positive (got {timeout}s, {interval}s)"
        )
    # Rounding absorbs float error at exact multiples, e.g. 0.3 / 0.1
    return math.floor(round(timeout / interval, 9))


def wait_for_image(
    ref: ImageReference,
    registry,
    timeout: float = DEFAULT_TIMEOUT,
    interval: float = DEFAULT_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Poll the registry until the image manifest exists.

    A missing manifest is expected while the image is still being pushed and
    is retried at a fixed interval. Any other error is raised immediately.

    Args:
        ref: Image to wait for.
        registry: Object with a manifest_exists(ref) method.
        timeout: Total time budget in seconds.
        interval: Seconds between checks.
        sleep: Sleep function, replaceable in tests.

    Returns:
        True once the manifest exists, False if the attempts ran out.
    """
    attempts = max_attempts(timeout, interval)
    if attempts < 1:
        logger.warning(
            "Image check timeout %ss is shorter than the interval %ss, not checking",
            timeout,
            interval,
        )
        return False

    def _log_attempt(state: RetryCallState) -> None:
        logger.debug(
            "Waiting for image %s to appear, attempt %d/%d...",
            ref,
            state.attempt_number,
            attempts,
        )

    retryer = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda found: not found),
        before=_log_attempt,
        retry_error_callback=lambda state: False,
        sleep=sleep,
    )
    found = retryer(registry.manifest_exists, ref)
    if found:
        logger.info("Image %s is available", ref)
    else:
        logger.warning("Image %s did not appear after %d attempts", ref, attempts)
    return found
