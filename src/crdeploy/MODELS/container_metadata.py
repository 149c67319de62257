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
Models for the runtime configuration baked into a container image.
"""
from typing import Any, Dict, List
from pydantic import BaseModel

ARGUMENTS_LABEL = "IMAGE_ARGUMENTS"


class EnvVar(BaseModel):
    """
    A single environment variable as the platform expects it.
    """
    name: str
    value: str = ""


class ContainerMetadata(BaseModel):
    """
    Environment variables and arguments declared by an image.
    Used to seed defaults that explicit overrides are layered on top of.
    """
    env_vars: List[EnvVar] = []
    arguments: List[str] = []

    @classmethod
    def from_image_config(cls, config: Dict[str, Any]) -> "ContainerMetadata":
        """
        Builds metadata from an image configuration blob.

        Args:
            config: The decoded config blob (the object holding the "config" key).

        Returns:
            ContainerMetadata with Env entries and the IMAGE_ARGUMENTS label.

        Raises:
            ValueError: The blob does not have the shape of an image config.
        """
        if not isinstance(config, dict):
            raise ValueError(f"Image config must be an object, got {type(config).__name__}")
        container_config = config.get("config") or {}
        if not isinstance(container_config, dict):
            raise ValueError("Image config 'config' section must be an object")

        entries = container_config.get("Env") or []
        if not isinstance(entries, list):
            raise ValueError("Image config Env must be a list")

        env_vars = []
        for entry in entries:
            if not isinstance(entry, str):
                raise ValueError(f"Malformed Env entry in image config: {entry!r}")
            # Values may themselves contain '='
            name, _, value = entry.partition("=")
            if name:
                env_vars.append(EnvVar(name=name, value=value))

        arguments: List[str] = []
        labels = container_config.get("Labels") or {}
        if not isinstance(labels, dict):
            raise ValueError("Image config Labels must be an object")
        if isinstance(labels.get(ARGUMENTS_LABEL), str) and labels[ARGUMENTS_LABEL]:
            arguments = labels[ARGUMENTS_LABEL].split(",")

        return cls(env_vars=env_vars, arguments=arguments)
