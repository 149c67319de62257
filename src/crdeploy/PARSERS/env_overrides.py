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
Sources of environment variable overrides, and how they are layered.
"""
import os
from typing import Dict, Iterable, List, Mapping, Optional

from dotenv import dotenv_values

from ..MODELS.container_metadata import EnvVar
from ..MODELS.errors import ConfigError

ENV_PREFIX = "CLOUDRUN_ACTION_"


def from_prefixed_environ(environ: Mapping[str, str], prefix: str = ENV_PREFIX) -> List[EnvVar]:
    """
    Collects process environment variables carrying a prefix, prefix stripped.

    Args:
        environ: The process environment.
        prefix: Prefix marking a variable as meant for the service.

    Returns:
        List[EnvVar]: Variables in environment order.
    """
    env = []
    for key, value in environ.items():
        if key.startswith(prefix) and len(key) > len(prefix):
            env.append(EnvVar(name=key[len(prefix):], value=value))
    return env


def from_env_file(path: Optional[str]) -> List[EnvVar]:
    """
    Reads a dotenv file. Keys without a value become empty strings.
    """
    if not path:
        return []
    if not os.path.isfile(path):
        raise ConfigError(f"Environment file not found: {path}")
    return [
        EnvVar(name=key, value=value or "")
        for key, value in dotenv_values(path).items()
    ]


def merge_env(*layers: Iterable[EnvVar]) -> List[EnvVar]:
    """
    Layers variable lists; later layers win.
    A variable keeps the position where its name first appeared.
    """
    merged: Dict[str, str] = {}
    for layer in layers:
        for var in layer:
            merged[var.name] = var.value
    return [EnvVar(name=name, value=value) for name, value in merged.items()]
