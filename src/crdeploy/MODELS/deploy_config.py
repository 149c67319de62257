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
Process configuration for a single deployment run.
"""
from typing import Optional
from pydantic import BaseModel, ValidationError, field_validator, model_validator

from .errors import ConfigError
from .service_spec import AuthorizationMode

DEFAULT_IMAGE_CHECK_TIMEOUT = 30  # minutes
DEFAULT_IMAGE_CHECK_INTERVAL = 5  # seconds
DEFAULT_TRIGGER_LABEL = "lab_environment"


class DeployConfig(BaseModel):
    """
    Named inputs of a deployment, as read from CLI options or action inputs.
    """
    name: str
    run_region: str
    service_account_key: str
    image: Optional[str] = None

    service_account_name: Optional[str] = None
    vpc_connector_name: Optional[str] = None

    allow_unauthenticated: bool = False
    image_check_timeout: float = DEFAULT_IMAGE_CHECK_TIMEOUT
    image_check_interval: float = DEFAULT_IMAGE_CHECK_INTERVAL
    delete_service: bool = False

    # Reporting and overrides
    github_token: Optional[str] = None
    trigger_label: str = DEFAULT_TRIGGER_LABEL
    env_file: Optional[str] = None

    @field_validator(
        "image",
        "service_account_name",
        "vpc_connector_name",
        "github_token",
        "env_file",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("name", "run_region", "service_account_key")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("is required")
        return value.strip()

    @field_validator("image_check_timeout", "image_check_interval")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @model_validator(mode="after")
    def _image_required_for_deploy(self) -> "DeployConfig":
        if not self.delete_service and not self.image:
            raise ValueError("image is required unless delete_service is set")
        return self

    @classmethod
    def from_inputs(cls, **inputs) -> "DeployConfig":
        """
        Validates raw inputs, raising ConfigError instead of a pydantic error.
        """
        try:
            return cls(**inputs)
        except ValidationError as e:
            problems = []
            for error in e.errors():
                location = ".".join(str(part) for part in error["loc"])
                message = error["msg"].removeprefix("Value error, ")
                problems.append(f"{location}: {message}" if location else message)
            raise ConfigError("Invalid configuration: " + "; ".join(problems)) from e

    @property
    def authorization_mode(self) -> AuthorizationMode:
        if self.allow_unauthenticated:
            return AuthorizationMode.PUBLIC
        return AuthorizationMode.RESTRICTED

    @property
    def image_check_timeout_seconds(self) -> float:
        return self.image_check_timeout * 60
