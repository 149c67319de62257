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
Client for the Cloud Run Admin API (v1, Knative-compatible surface).
"""
import logging
from typing import Any, Dict, Optional

from ..UTILS.http import send_authorized

logger = logging.getLogger(__name__)

IAM_ROOT_URL = "https://run.googleapis.com"
INVOKER_ROLE = "roles/run.invoker"
ALL_USERS = "allUsers"


class CloudRunClient:
    """
    Get, create, replace and delete Cloud Run services in one region,
    and read or write their IAM policies.

    Every failure surfaces as NotFoundError, TransientApiError or
    RemoteApiError, as classified by send_authorized.
    """

    def __init__(self, auth, region: str, timeout: float = 60):
        """
        :param auth: CredentialContext supplying tokens and the project id.
        :param region: Region the services live in.
        :param timeout: Per-request timeout in seconds.
        """
        self.auth = auth
        self.region = region
        self.timeout = timeout

    @property
    def project(self) -> str:
        return self.auth.project_id

    @property
    def root_url(self) -> str:
        return f"https://{self.region}-run.googleapis.com"

    def _services_url(self, name: Optional[str] = None) -> str:
        url = f"{self.root_url}/apis/serving.knative.dev/v1/namespaces/{self.project}/services"
        if name:
            url = f"{url}/{name}"
        return url

    def _iam_url(self, name: str, verb: str) -> str:
        return (
            f"{IAM_ROOT_URL}/v1/projects/{self.project}/locations/{self.region}"
            f"/services/{name}:{verb}"
        )

    def _call(
        self, method: str, url: str, action: str, payload: Optional[Any] = None
    ) -> Dict[str, Any]:
        response = send_authorized(
            method,
            url,
            auth=self.auth,
            action=action,
            payload=payload,
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )
        return response.json()

    def get_service(self, name: str) -> Dict[str, Any]:
        return self._call("GET", self._services_url(name), f"Get service {name}")

    def create_service(self, document: Dict[str, Any]) -> Dict[str, Any]:
        name = document["metadata"]["name"]
        return self._call(
            "POST", self._services_url(), f"Create service {name}", payload=document
        )

    def replace_service(self, name: str, document: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(
            "PUT", self._services_url(name), f"Replace service {name}", payload=document
        )

    def delete_service(self, name: str) -> None:
        self._call("DELETE", self._services_url(name), f"Delete service {name}")

    def get_iam_policy(self, name: str) -> Dict[str, Any]:
        return self._call("GET", self._iam_url(name, "getIamPolicy"), f"Get IAM policy of {name}")

    def set_iam_policy(self, name: str, policy: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(
            "POST",
            self._iam_url(name, "setIamPolicy"),
            f"Set IAM policy of {name}",
            payload={"policy": policy},
        )


def add_binding(policy: Dict[str, Any], role: str, member: str) -> bool:
    """
    Add a member to a role binding in place.

    Returns:
        True if the policy changed, False if the member was already bound.
    """
    bindings = policy.setdefault("bindings", [])
    for binding in bindings:
        if binding.get("role") == role:
            members = binding.setdefault("members", [])
            if member in members:
                return False
            members.append(member)
            return True
    bindings.append({"role": role, "members": [member]})
    return True
