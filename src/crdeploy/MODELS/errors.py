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
Exception hierarchy for deployments.

Every failure a deployment can end in derives from DeployError so the CLI
can turn it into a non-zero exit status with a readable summary.
"""
from typing import Optional


class DeployError(Exception):
    """Base class for all deployment failures."""


class ConfigError(DeployError):
    """A required input is missing or has an invalid value."""


class ImageReferenceError(ConfigError, ValueError):
    """An image reference string could not be parsed."""


class CredentialError(DeployError):
    """The service account key could not be materialized or loaded."""


class RegistryTimeoutError(DeployError):
    """The image never became available in the registry."""


class RemoteApiError(DeployError):
    """
    Unexpected response from a remote API.

    Carries the HTTP status code when one was received.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class NotFoundError(RemoteApiError):
    """The requested resource does not exist (HTTP 404)."""


class TransientApiError(RemoteApiError):
    """Throttling, server-side or network failure that may succeed on retry."""


class RegistryError(RemoteApiError):
    """The registry failed while the image availability was being checked."""


class ReadinessTimeoutError(DeployError):
    """The service status stayed Unknown for the whole polling budget."""


class DeploymentFailedError(DeployError):
    """The platform reported a terminal failed condition for the service."""

    def __init__(self, message: str, logs_url: Optional[str] = None):
        self.message = message
        self.logs_url = logs_url
        text = message
        if logs_url:
            text = f"{message}\nView logs for this revision: {logs_url}"
        super().__init__(text)


class ReportingError(DeployError):
    """Posting or updating a progress note failed. Never fatal."""
