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
Service account credential provisioning.

The key is materialized to a file once per process, then loaded with
google-auth into a CredentialContext that clients receive explicitly.
"""
import os
import logging
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request as AuthRequest

from ..MODELS.errors import CredentialError

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
CREDENTIALS_ENV = "GOOGLE_APPLICATION_CREDENTIALS"

Secret = Union[str, bytes, Path]


class CredentialContext:
    """
    Authenticated identity used by the registry and platform clients.
    """

    def __init__(self, path: str, credentials, project_id: str):
        self.path = path
        self.credentials = credentials
        self.project_id = project_id

    @classmethod
    def from_file(cls, path: str) -> "CredentialContext":
        """
        Load credentials from a key file.

        Raises:
            CredentialError: If the file cannot be read or names no project.
        """
        try:
            credentials, project_id = google.auth.load_credentials_from_file(
                path, scopes=[CLOUD_PLATFORM_SCOPE]
            )
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise CredentialError(f"Unable to load service account key: {e}") from e

        if not project_id:
            raise CredentialError("Service account key does not name a project")
        return cls(path=path, credentials=credentials, project_id=project_id)

    def token(self, force_refresh: bool = False) -> str:
        """Return a bearer token, refreshing it when expired or when forced."""
        if force_refresh or not self.credentials.valid:
            try:
                self.credentials.refresh(AuthRequest())
            except google.auth.exceptions.GoogleAuthError as e:
                raise CredentialError(f"Unable to obtain an access token: {e}") from e
        return self.credentials.token

    def authorization_header(self, force_refresh: bool = False) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token(force_refresh)}"}


class CredentialFile:
    """
    One-time materialization of the key file for the current process.
    """

    def __init__(self):
        self.path: Optional[str] = None

    def materialize(self, secret: Secret, environ: Mapping[str, str]) -> str:
        """
        Resolve the key file location, writing the secret out at most once.

        An ambient GOOGLE_APPLICATION_CREDENTIALS wins. Otherwise the secret is
        used as a path when such a file exists, and as key material when not.
        """
        if self.path:
            return self.path

        ambient = environ.get(CREDENTIALS_ENV)
        if ambient:
            logger.debug("Using ambient credentials from %s", CREDENTIALS_ENV)
            self.path = ambient
            return self.path

        if isinstance(secret, Path) or _is_existing_file(secret):
            self.path = str(secret)
            logger.debug("Using service account key file %s", self.path)
            return self.path

        data = secret if isinstance(secret, bytes) else str(secret).encode()
        if not data.strip():
            raise CredentialError("Service account key is empty")
        try:
            fd, path = tempfile.mkstemp(prefix="crdeploy-", suffix=".json")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError as e:
            raise CredentialError(f"Unable to write service account key: {e}") from e

        logger.debug("Wrote service account key to %s", path)
        self.path = path
        return self.path


def _is_existing_file(secret: Union[str, bytes]) -> bool:
    if isinstance(secret, bytes):
        return False
    candidate = secret.strip()
    if not candidate or candidate.startswith("{"):
        return False
    return os.path.isfile(candidate)


_credential_file = CredentialFile()


def ensure_credentials_available(
    secret: Secret,
    environ: Optional[Mapping[str, str]] = None,
    store: Optional[CredentialFile] = None,
) -> CredentialContext:
    """
    Make the service account key readable by google-auth and load it.

    Args:
        secret: Literal JSON key material, or a path to a key file.
        environ: Environment to consult for an ambient key location.
        store: Materialization state; defaults to the process-wide one.

    Returns:
        CredentialContext bound to the key's project.
    """
    store = store or _credential_file
    path = store.materialize(secret, os.environ if environ is None else environ)
    return CredentialContext.from_file(path)
