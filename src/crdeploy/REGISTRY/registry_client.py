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
Container registry client.
Implements the parts of the Docker Registry HTTP API V2 a deployment needs:
manifest existence checks and reading an image's configuration.
"""

import logging
from typing import Any, Dict, Optional

from .image_reference import ImageReference
from ..MODELS.errors import NotFoundError, RemoteApiError
from ..UTILS.http import HttpResponse, send_authorized

logger = logging.getLogger(__name__)

MANIFEST_MEDIA_TYPES = [
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
]

INDEX_MEDIA_TYPES = [
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.index.v1+json",
]

# Cloud Run only runs linux/amd64 images
TARGET_PLATFORM = {"os": "linux", "architecture": "amd64"}


class RegistryClient:
    """
    Client for interacting with OCI-compatible registries such as
    gcr.io and Artifact Registry, authenticated with a bearer token.
    """

    def __init__(self, auth=None, timeout: float = 60):
        """
        Initialize the registry client.

        Args:
            auth: Object with an authorization_header(force_refresh) method,
                typically a CredentialContext. None for anonymous access.
            timeout: Per-request timeout in seconds.
        """
        self.auth = auth
        self.timeout = timeout

    def _make_request(
        self, method: str, url: str, accept: Optional[str] = None
    ) -> HttpResponse:
        """Make an authenticated request to the registry."""
        return send_authorized(
            method,
            url,
            auth=self.auth,
            headers={"Accept": accept or "*/*"},
            timeout=self.timeout,
        )

    def manifest_exists(self, ref: ImageReference) -> bool:
        """
        Check whether the manifest for a reference exists without downloading it.

        Returns:
            True if the registry has the manifest, False on 404.

        Raises:
            RemoteApiError: For any other failure (auth, network, 5xx).
        """
        try:
            self._make_request("HEAD", ref.manifest_url, ", ".join(MANIFEST_MEDIA_TYPES))
        except NotFoundError:
            return False
        return True

    def get_manifest(self, ref: ImageReference) -> Dict[str, Any]:
        """
        Get the image manifest, resolving multi-platform indexes.

        Args:
            ref: Image reference

        Returns:
            Manifest as a dictionary
        """
        response = self._make_request("GET", ref.manifest_url, ", ".join(MANIFEST_MEDIA_TYPES))
        manifest = _json_object(response, f"Manifest of {ref}")

        if manifest.get("mediaType") in INDEX_MEDIA_TYPES or "manifests" in manifest:
            manifest = self._select_platform_manifest(ref, manifest)

        return manifest

    def _select_platform_manifest(
        self, ref: ImageReference, manifest_list: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Select the manifest matching the platform Cloud Run runs on."""
        manifests = [m for m in manifest_list.get("manifests") or [] if isinstance(m, dict)]
        for manifest in manifests:
            platform_info = manifest.get("platform") or {}
            if (
                platform_info.get("os") == TARGET_PLATFORM["os"]
                and platform_info.get("architecture") == TARGET_PLATFORM["architecture"]
            ):
                return self.get_manifest(ref.pinned(manifest["digest"]))

        # Fall back to first manifest
        if manifests:
            return self.get_manifest(ref.pinned(manifests[0]["digest"]))

        raise RemoteApiError(f"No suitable manifest found for {ref}")

    def get_config(
        self, ref: ImageReference, manifest: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Get the image configuration.

        Args:
            ref: Image reference
            manifest: Image manifest

        Returns:
            Image configuration as a dictionary
        """
        config = manifest.get("config")
        digest = config.get("digest") if isinstance(config, dict) else None

        if not digest:
            raise RemoteApiError(f"No config digest in manifest for {ref}")

        response = self._make_request("GET", ref.blob_url(digest))
        return _json_object(response, f"Config of {ref}")


def _json_object(response: HttpResponse, what: str) -> Dict[str, Any]:
    """Decode a response body that must hold a JSON object."""
    try:
        document = response.json()
    except ValueError as e:
        raise RemoteApiError(f"{what} is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise RemoteApiError(
            f"{what} is not a JSON object (got {type(document).__name__})"
        )
    return document
