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
Human-readable progress notes, rendered as Markdown for pull request comments.
"""
from typing import List, Optional
from enum import Enum
from dataclasses import dataclass, field
from jinja2 import Template

from ..MODELS.container_metadata import EnvVar
from ..MODELS.service_status import DeploymentOutcome


class NoteStatus(str, Enum):
    """
    Overall state shown in a note's header.
    """
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


DEPLOYMENT_HEADERS = {
    NoteStatus.IN_PROGRESS: ":construction: Cloud Run Deployment in progress :construction:",
    NoteStatus.SUCCEEDED: ":white_check_mark: Cloud Run Deployment successful :white_check_mark:",
    NoteStatus.FAILED: ":heavy_exclamation_mark: Cloud Run Deployment failed :heavy_exclamation_mark:",
}

DEPLOYMENT_TEMPLATE = """\
### {{ header }}
<details><summary>Docker image</summary>Image: {{ image }}</details>

- [{{ 'x' if image_available else ' ' }}] Waiting for the docker image to be available on the container registry.
{% if image_timed_out %}

:exclamation: Timed out waiting for docker image, cannot continue with deployment.
{% endif %}
{% if image_available %}
<details><summary>Configurable environment variables</summary>

The environment variables you are able to configure should be listed in the repository's README.md file.

Configure environment variables by adding labels to the pull request, the name of the label is the environment variable name, the 'description' field should be set to the value.
</details>

{% if env %}
<details><summary>Configured environment variables / settings</summary>

KEY | VALUE
--- | ---
{% for var in env %}
{{ var.name }} | {{ var.value }}
{% endfor %}

</details>

{% endif %}
- [{{ 'x' if outcome else ' ' }}] Starting Cloud Run Service
{% for event in events %}
  - {{ event }}
{% endfor %}
{% endif %}
{% if outcome %}
- Deployment date: {{ outcome.deployed_at or 'unknown' }}.
- URL: {{ outcome.url }}
- Logs: {{ outcome.logs_url }}
{% endif %}
{% if error %}
- Deployment failed: {{ error }}
{% endif %}
"""

DELETION_TEMPLATE = """\
:robot: Cloud Run Deployment: Deleting {{ name }}
{% if status == 'succeeded' %}
:robot: Cloud Run Deployment: {{ 'Deployment successfully deleted.' if deleted else 'Nothing to delete, the service does not exist.' }}
{% elif status == 'failed' %}
:robot: Cloud Run Deployment: Deployment deletion failed: {{ error }}
{% endif %}
"""


@dataclass
class DeploymentNote:
    """
    State of a create-or-update run as shown to reviewers.
    """

    image: str
    status: NoteStatus = NoteStatus.IN_PROGRESS
    image_available: bool = False
    image_timed_out: bool = False
    env: List[EnvVar] = field(default_factory=list)
    events: List[str] = field(default_factory=list)
    outcome: Optional[DeploymentOutcome] = None
    error: Optional[str] = None

    def succeed(self, outcome: DeploymentOutcome) -> None:
        self.status = NoteStatus.SUCCEEDED
        self.outcome = outcome

    def fail(self, error: str) -> None:
        self.status = NoteStatus.FAILED
        self.error = error

    def render(self) -> str:
        template = Template(DEPLOYMENT_TEMPLATE, trim_blocks=True, lstrip_blocks=True)
        return template.render(
            header=DEPLOYMENT_HEADERS[self.status],
            image=self.image,
            image_available=self.image_available,
            image_timed_out=self.image_timed_out,
            env=self.env,
            events=self.events,
            outcome=self.outcome,
            error=self.error,
        )


@dataclass
class DeletionNote:
    """
    State of a delete run as shown to reviewers.
    """

    name: str
    status: NoteStatus = NoteStatus.IN_PROGRESS
    deleted: bool = False
    error: Optional[str] = None

    def render(self) -> str:
        template = Template(DELETION_TEMPLATE, trim_blocks=True, lstrip_blocks=True)
        return template.render(
            name=self.name,
            status=self.status.value,
            deleted=self.deleted,
            error=self.error,
        )
