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
End-to-end orchestration of a deployment run: credentials, image wait,
reconciliation or deletion, and progress notes along the way.
"""
import os
import time
import logging
from typing import Callable, List, Mapping, Optional

from pydantic import ValidationError

from .readiness import ReadinessPoller
from .reconciler import ReconcileEvent, ServiceReconciler
from ..MODELS.container_metadata import ContainerMetadata, EnvVar
from ..MODELS.deploy_config import DeployConfig
from ..MODELS.errors import (
    ConfigError,
    DeployError,
    RegistryError,
    RegistryTimeoutError,
    RemoteApiError,
    ReportingError,
)
from ..MODELS.service_spec import ServiceSpec, canonical_service_name
from ..MODELS.service_status import DeploymentOutcome
from ..PARSERS import env_overrides
from ..PLATFORM.credentials import ensure_credentials_available
from ..PLATFORM.run_client import CloudRunClient
from ..REGISTRY.image_inspector import ImageInspector
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.image_waiter import wait_for_image
from ..REGISTRY.registry_client import RegistryClient
from ..REPORTING.notes import DeletionNote, DeploymentNote, NoteStatus
from ..REPORTING.pull_request import PullRequestContext
from ..REPORTING.reporters import ProgressReporter, build_reporter

logger = logging.getLogger(__name__)

EVENT_TEXT = {
    ReconcileEvent.CREATING: "Creating service {detail}",
    ReconcileEvent.CREATED: "Service {detail} created",
    ReconcileEvent.UPDATING: "Updating service {detail}",
    ReconcileEvent.UPDATED: "Service {detail} updated",
    ReconcileEvent.UPDATE_FAILED: "Update failed, checking the current revision: {detail}",
    ReconcileEvent.AUTHORIZED: "Unauthenticated invocations allowed",
}


class DeploymentOrchestrator:
    """
    Runs the create-or-update path or the delete path for one DeployConfig.
    """

    def __init__(
        self,
        config: DeployConfig,
        reporter: Optional[ProgressReporter] = None,
        registry=None,
        run_client=None,
        pull_request: Optional[PullRequestContext] = None,
        environ: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initializes the orchestrator.

        Clients not passed in are built from the service account key on first use.

        :param config: Validated process configuration.
        :param reporter: Progress reporter; derived from the environment if omitted.
        :param registry: RegistryClient for the image's registry.
        :param run_client: CloudRunClient for the configured region.
        :param pull_request: Pull request context; read from the environment if omitted.
        :param environ: Process environment.
        :param sleep: Sleep function shared by both polling loops.
        """
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.pull_request = pull_request or PullRequestContext.from_environ(self.environ)
        self.reporter = reporter or build_reporter(config.github_token, self.pull_request)
        self.registry = registry
        self.run_client = run_client
        self.sleep = sleep
        self._note_handle = None

    def _connect(self) -> None:
        if self.registry is not None and self.run_client is not None:
            return
        auth = ensure_credentials_available(self.config.service_account_key, self.environ)
        if self.registry is None:
            self.registry = RegistryClient(auth)
        if self.run_client is None:
            self.run_client = CloudRunClient(auth, self.config.run_region)

    def _publish(self, note) -> None:
        text = note.render()
        try:
            if self._note_handle is None:
                self._note_handle = self.reporter.post(text)
            else:
                self.reporter.update(self._note_handle, text)
        except ReportingError as e:
            logger.warning("Progress note not published: %s", e)

    def gather_environment(self, metadata: ContainerMetadata) -> List[EnvVar]:
        """
        Layer image defaults, CLOUDRUN_ACTION_ variables, the env file and
        pull request labels, later sources winning.
        """
        label_env = []
        if self.pull_request:
            label_env = self.pull_request.label_env(self.config.trigger_label)
        return env_overrides.merge_env(
            metadata.env_vars,
            env_overrides.from_prefixed_environ(self.environ),
            env_overrides.from_env_file(self.config.env_file),
            label_env,
        )

    def build_spec(self, env: List[EnvVar], args: List[str]) -> ServiceSpec:
        try:
            return ServiceSpec(
                name=self.config.name,
                region=self.config.run_region,
                image=self.config.image,
                service_account_name=self.config.service_account_name,
                vpc_connector_name=self.config.vpc_connector_name,
                env=env,
                args=args,
                authorization_mode=self.config.authorization_mode,
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid service specification: {e}") from e

    def deploy(self) -> DeploymentOutcome:
        """
        Wait for the image, then create or replace the service and wait
        until it is ready.

        Raises:
            DeployError: Any fatal failure; the progress note shows it first.
        """
        ref = ImageReference.parse(self.config.image)
        logger.info("Deploying docker image %s...", ref)

        note = DeploymentNote(image=str(ref))
        self._publish(note)
        try:
            self._connect()
            try:
                found = wait_for_image(
                    ref,
                    self.registry,
                    timeout=self.config.image_check_timeout_seconds,
                    interval=self.config.image_check_interval,
                    sleep=self.sleep,
                )
            except RemoteApiError as e:
                raise RegistryError(f"Checking image {ref} failed: {e}", status=e.status) from e
            if not found:
                note.image_timed_out = True
                raise RegistryTimeoutError(f"Docker image {ref} not found, stopping.")

            note.image_available = True
            metadata = ImageInspector(self.registry).inspect(ref)
            note.env = self.gather_environment(metadata)
            self._publish(note)

            spec = self.build_spec(note.env, metadata.arguments)

            def _on_event(event: str, detail: str) -> None:
                note.events.append(EVENT_TEXT[event].format(detail=detail))
                self._publish(note)

            reconciler = ServiceReconciler(
                self.run_client,
                ReadinessPoller(self.run_client, sleep=self.sleep),
                on_event=_on_event,
            )
            outcome = reconciler.reconcile(spec)
        except DeployError as e:
            note.fail(str(e))
            self._publish(note)
            raise

        note.succeed(outcome)
        self._publish(note)
        logger.info("Service %s deployed at %s", spec.canonical_name, outcome.url)
        return outcome

    def destroy(self) -> bool:
        """
        Delete the service. A missing service is not an error.

        Returns:
            True if a service was deleted.
        """
        name = canonical_service_name(self.config.name)
        logger.info("Deleting Cloud Run deployment %s...", name)

        note = DeletionNote(name=name)
        self._publish(note)
        try:
            self._connect()
            deleted = ServiceReconciler(self.run_client).delete(name)
        except DeployError as e:
            note.status = NoteStatus.FAILED
            note.error = str(e)
            self._publish(note)
            raise

        note.status = NoteStatus.SUCCEEDED
        note.deleted = deleted
        self._publish(note)
        return deleted

    def run(self) -> Optional[DeploymentOutcome]:
        """Take the path selected by delete_service."""
        if self.config.delete_service:
            self.destroy()
            return None
        return self.deploy()
