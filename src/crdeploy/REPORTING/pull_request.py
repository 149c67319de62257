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
Pull request context of a GitHub Actions run.
"""
import json
import logging
from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass, field

from ..MODELS.container_metadata import EnvVar

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


@dataclass
class PullRequestContext:
    """Repository, number and labels of the pull request that triggered a run."""

    repository: str
    number: int
    labels: List[Dict[str, Any]] = field(default_factory=list)
    api_url: str = DEFAULT_API_URL

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> Optional["PullRequestContext"]:
        """
        Read the event payload GitHub Actions points GITHUB_EVENT_PATH at.

        Returns:
            The context, or None outside a pull request event.
        """
        event_path = environ.get("GITHUB_EVENT_PATH")
        repository = environ.get("GITHUB_REPOSITORY")
        if not event_path or not repository:
            return None

        try:
            with open(event_path, "r") as f:
                event = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Unable to read event payload %s: %s", event_path, e)
            return None

        pull_request = event.get("pull_request")
        if not isinstance(pull_request, dict) or "number" not in pull_request:
            return None

        return cls(
            repository=repository,
            number=int(pull_request["number"]),
            labels=list(pull_request.get("labels") or []),
            api_url=environ.get("GITHUB_API_URL") or DEFAULT_API_URL,
        )

    def label_env(self, trigger_label: Optional[str] = None) -> List[EnvVar]:
        """
        Labels configure the service: the label name is the variable name and
        its description the value. The trigger label and labels without a
        description are skipped.
        """
        env = []
        for label in self.labels:
            name = label.get("name")
            description = label.get("description")
            if not name or name == trigger_label or not description:
                continue
            env.append(EnvVar(name=name, value=description))
        return env
