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
Models describing the desired state of a Cloud Run service.
"""
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_validator

from .container_metadata import EnvVar


def canonical_service_name(name: str) -> str:
    """Cloud Run service names may not contain underscores."""
    return name.replace("_", "-")


class AuthorizationMode(str, Enum):
    """
    Who may invoke the deployed service.
    """
    PUBLIC = "public"
    RESTRICTED = "restricted"


class ServiceSpec(BaseModel):
    """
    The full desired state of a single deployable service.
    Built once per run from the process configuration and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    region: str
    image: str

    # Runtime
    service_account_name: Optional[str] = None
    vpc_connector_name: Optional[str] = None

    # Container
    env: List[EnvVar] = []
    args: List[str] = []

    authorization_mode: AuthorizationMode = AuthorizationMode.RESTRICTED

    @field_validator("service_account_name", "vpc_connector_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("name", "region", "image")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value.strip()

    @field_validator("env")
    @classmethod
    def _unique_env_names(cls, env: List[EnvVar]) -> List[EnvVar]:
        seen = set()
        for var in env:
            if var.name in seen:
                raise ValueError(f"duplicate environment variable: {var.name}")
            seen.add(var.name)
        return env

    @property
    def canonical_name(self) -> str:
        return canonical_service_name(self.name)

    @property
    def is_public(self) -> bool:
        return self.authorization_mode == AuthorizationMode.PUBLIC
