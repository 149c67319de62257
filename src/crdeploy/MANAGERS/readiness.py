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
Readiness polling for a Cloud Run service after it was created or replaced.
"""
import time
import logging
from typing import Callable

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from ..MODELS.errors import DeploymentFailedError, ReadinessTimeoutError, TransientApiError
from ..MODELS.service_status import ReadinessState, ServiceStatus
from ..PLATFORM.service_document import revision_logs_url

logger = logging.getLogger(__name__)

# Fixed on purpose: a service turns ready within seconds once created, unlike
# registry propagation, whose wait is configurable.
READINESS_ATTEMPTS = 100
READINESS_DELAY = 0.5


class ReadinessPoller:
    """
    Turns the asynchronous rollout of a service into a synchronous result.
    """

    def __init__(self, client, sleep: Callable[[float], None] = time.sleep):
        """
        :param client: CloudRunClient (get_service, region, project).
        :param sleep: Sleep function, replaceable in tests.
        """
        self.client = client
        self.sleep = sleep

    def _fetch_status(self, service_name: str) -> ServiceStatus:
        return ServiceStatus.from_resource(self.client.get_service(service_name))

    def poll_until_ready(self, service_name: str) -> ServiceStatus:
        """
        Poll the service until its first condition leaves the Unknown state.
        Every read is preceded by a READINESS_DELAY pause.

        Returns:
            The Ready status, carrying the URL and last transition time.

        Raises:
            DeploymentFailedError: The condition turned terminal without a URL.
            ReadinessTimeoutError: Still Unknown after every attempt.
            RemoteApiError: A non-transient API failure while polling.
        """

        def _log_attempt(state: RetryCallState) -> None:
            logger.debug(
                "Waiting for service %s to become ready, attempt %d...",
                service_name,
                state.attempt_number,
            )

        retryer = Retrying(
            stop=stop_after_attempt(READINESS_ATTEMPTS),
            wait=wait_fixed(READINESS_DELAY),
            retry=(
                retry_if_result(lambda status: not status.is_terminal)
                | retry_if_exception_type(TransientApiError)
            ),
            before=_log_attempt,
            sleep=self.sleep,
        )
        # Every read, the first included, follows a READINESS_DELAY pause
        self.sleep(READINESS_DELAY)
        try:
            status = retryer(self._fetch_status, service_name)
        except RetryError as e:
            raise ReadinessTimeoutError(
                f"Service {service_name} did not become ready after "
                f"{READINESS_ATTEMPTS} attempts. Check the Cloud Run deployment for errors."
            ) from e

        if status.state == ReadinessState.FAILED:
            raise DeploymentFailedError(
                status.message or "Service failed",
                revision_logs_url(service_name, self.client.region, self.client.project),
            )

        logger.info("Service %s is ready at %s", service_name, status.url)
        return status
