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
Create-or-replace reconciliation of a Cloud Run service, and its deletion.
"""
import logging
from typing import Callable, Optional

from .readiness import ReadinessPoller
from ..MODELS.errors import NotFoundError, RemoteApiError
from ..MODELS.service_spec import ServiceSpec, canonical_service_name
from ..MODELS.service_status import DeploymentOutcome
from ..PLATFORM.run_client import ALL_USERS, INVOKER_ROLE, add_binding
from ..PLATFORM.service_document import build_service_document, logs_viewer_url

logger = logging.getLogger(__name__)


class ReconcileEvent:
    """Names of the phase notifications a reconciler emits."""

    CREATING = "creating"
    CREATED = "created"
    UPDATING = "updating"
    UPDATED = "updated"
    UPDATE_FAILED = "update_failed"
    AUTHORIZED = "authorized"


class ServiceReconciler:
    """
    Converges a remote service toward a ServiceSpec.
    """

    def __init__(
        self,
        client,
        poller: Optional[ReadinessPoller] = None,
        on_event: Optional[Callable[[str, str], None]] = None,
    ):
        """
        Initializes the reconciler.

        :param client: CloudRunClient scoped to the service's region.
        :param poller: Readiness poller; one is built on the same client if omitted.
        :param on_event: Callback receiving (event, detail) at each phase.
        """
        self.client = client
        self.poller = poller or ReadinessPoller(client)
        self.on_event = on_event

    def _emit(self, event: str, detail: str = "") -> None:
        if self.on_event:
            self.on_event(event, detail)

    def exists(self, name: str) -> bool:
        """
        Probe for the service. Only "not found" means absent; any other
        error aborts reconciliation.
        """
        logger.debug(
            "Checking if service %s exists (name: namespaces/%s/services/%s)..",
            name,
            self.client.project,
            name,
        )
        try:
            self.client.get_service(name)
        except NotFoundError:
            return False
        return True

    def reconcile(self, spec: ServiceSpec) -> DeploymentOutcome:
        """
        Create the service if absent, replace it if present, authorize it,
        and wait until it is ready.

        Returns:
            DeploymentOutcome with the service URL and logs link.
        """
        name = spec.canonical_name
        document = build_service_document(spec, self.client.project)

        if self.exists(name):
            logger.info("Updating service %s", name)
            self._emit(ReconcileEvent.UPDATING, name)
            try:
                self.client.replace_service(name, document)
            except RemoteApiError as e:
                # The service exists, so its status is still worth resolving
                logger.error("Updating service %s failed: %s", name, e)
                self._emit(ReconcileEvent.UPDATE_FAILED, str(e))
            else:
                logger.info("Service %s updated", name)
                self._emit(ReconcileEvent.UPDATED, name)
        else:
            logger.info("Creating service %s", name)
            self._emit(ReconcileEvent.CREATING, name)
            self.client.create_service(document)
            logger.info("Service %s created", name)
            self._emit(ReconcileEvent.CREATED, name)

        self.authorize(spec)

        status = self.poller.poll_until_ready(name)
        return DeploymentOutcome(
            url=status.url,
            logs_url=logs_viewer_url(name, self.client.region, self.client.project),
            deployed_at=status.last_transition_time,
        )

    def authorize(self, spec: ServiceSpec) -> None:
        """
        Grant allUsers the invoker role for public services.
        Existing bindings are never revoked.
        """
        name = spec.canonical_name
        if not spec.is_public:
            logger.debug("Service %s is IAM restricted, leaving its policy untouched", name)
            return

        policy = self.client.get_iam_policy(name)
        if add_binding(policy, INVOKER_ROLE, ALL_USERS):
            self.client.set_iam_policy(name, policy)
            logger.info("Allowed unauthenticated invocations of %s", name)
        else:
            logger.debug("Service %s already allows unauthenticated invocations", name)
        self._emit(ReconcileEvent.AUTHORIZED, name)

    def delete(self, name: str) -> bool:
        """
        Delete a service. A service that does not exist counts as deleted.

        Returns:
            True if a service was deleted, False if there was none.
        """
        name = canonical_service_name(name)
        try:
            self.client.delete_service(name)
        except NotFoundError:
            logger.info("Service %s does not exist, nothing to delete", name)
            return False
        logger.info("Service %s deleted", name)
        return True
