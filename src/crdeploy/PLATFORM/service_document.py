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
Translation of a ServiceSpec into the Knative Service document Cloud Run accepts,
and links into the Cloud Console for a deployed service.

Updates replace the whole resource, so the document is always built in full
from the ServiceSpec and never from previously observed remote state.
"""
from typing import Any, Dict
from urllib.parse import quote

from ..MODELS.service_spec import ServiceSpec

API_VERSION = "serving.knative.dev/v1"
VPC_CONNECTOR_ANNOTATION = "run.googleapis.com/vpc-access-connector"


def build_service_document(spec: ServiceSpec, project: str) -> Dict[str, Any]:
    """
    Build the complete desired-state document for a service.

    Args:
        spec: Desired service state.
        project: Project id, used as the Knative namespace.

    Returns:
        A JSON-serializable Knative Service resource.
    """
    container: Dict[str, Any] = {"image": spec.image}
    if spec.env:
        container["env"] = [{"name": var.name, "value": var.value} for var in spec.env]
    if spec.args:
        container["args"] = list(spec.args)

    template_spec: Dict[str, Any] = {"containers": [container]}
    if spec.service_account_name:
        template_spec["serviceAccountName"] = spec.service_account_name

    template: Dict[str, Any] = {"spec": template_spec}
    if spec.vpc_connector_name:
        template["metadata"] = {
            "annotations": {VPC_CONNECTOR_ANNOTATION: spec.vpc_connector_name}
        }

    return {
        "apiVersion": API_VERSION,
        "kind": "Service",
        "metadata": {"name": spec.canonical_name, "namespace": project},
        "spec": {"template": template},
    }


def logs_viewer_url(service_name: str, region: str, project: str) -> str:
    """Log explorer link filtered to every revision of the service."""
    advanced_filter = (
        'resource.type = "cloud_run_revision"\n'
        f'resource.labels.service_name = "{service_name}"\n'
        f'resource.labels.location = "{region}"\n'
        " severity>=DEFAULT"
    )
    return (
        "https://console.cloud.google.com/logs/viewer"
        f"?advancedFilter={quote(advanced_filter, safe='')}&project={project}"
    )


def revision_logs_url(service_name: str, region: str, project: str) -> str:
    """Cloud Run service page, logs tab."""
    return (
        f"https://console.cloud.google.com/run/detail/{region}/{service_name}/logs"
        f"?project={project}"
    )
