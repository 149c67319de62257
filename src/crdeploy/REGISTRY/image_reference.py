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
Image reference parsing and handling.
Parses fully qualified references like 'gcr.io/project/image:v1'.
"""

import re
from dataclasses import dataclass

from ..MODELS.errors import ImageReferenceError

# Tag grammar from the distribution spec
_TAG_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed, fully qualified image reference.

    Examples:
        - gcr.io/project/image:v1 -> registry=gcr.io, repository=project/image, tag=v1
        - localhost:5000/team/app:latest -> registry=localhost:5000, repository=team/app
        - europe-docker.pkg.dev/p/repo/app:1.2 -> repository=p/repo/app
    """

    registry: str
    repository: str
    tag: str

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string of the form host/repository:tag.

        Args:
            reference: Image reference string (e.g., 'gcr.io/project/image:v1')

        Returns:
            Parsed ImageReference object.

        Raises:
            ImageReferenceError: If any of host, repository or tag is missing.
        """
        if not reference or not reference.strip():
            raise ImageReferenceError("Empty image reference")

        if "@" in reference:
            raise ImageReferenceError(
                f"Digest references are not supported, use a tag: {reference}"
            )

        registry, slash, remainder = reference.partition("/")
        if not slash or not registry or not remainder:
            raise ImageReferenceError(
                f"Image reference must include a registry host: {reference}"
            )

        # The tag separator is the last colon; a colon inside the host is a port
        repository, colon, tag = remainder.rpartition(":")
        if not colon or "/" in tag:
            raise ImageReferenceError(f"Image reference must include a tag: {reference}")
        if not repository:
            raise ImageReferenceError(
                f"Image reference must include a repository: {reference}"
            )
        if not _TAG_PATTERN.match(tag):
            raise ImageReferenceError(f"Invalid tag '{tag}' in {reference}")
        if any(not part for part in repository.split("/")):
            raise ImageReferenceError(f"Invalid repository path in {reference}")

        return cls(registry=registry, repository=repository, tag=tag)

    @property
    def full_name(self) -> str:
        """Get full image name with registry and tag."""
        if self.tag.startswith("sha256:"):
            return f"{self.registry}/{self.repository}@{self.tag}"
        return f"{self.registry}/{self.repository}:{self.tag}"

    @property
    def registry_url(self) -> str:
        """Get the registry URL for API calls."""
        if "://" in self.registry:
            return self.registry
        return f"https://{self.registry}"

    @property
    def manifest_url(self) -> str:
        """Get the manifest endpoint for this tag."""
        return f"{self.registry_url}/v2/{self.repository}/manifests/{self.tag}"

    def blob_url(self, digest: str) -> str:
        """Get the blob endpoint for a content digest."""
        return f"{self.registry_url}/v2/{self.repository}/blobs/{digest}"

    def pinned(self, digest: str) -> "ImageReference":
        """Same repository, addressed by manifest digest instead of tag."""
        return ImageReference(registry=self.registry, repository=self.repository, tag=digest)

    def __str__(self) -> str:
        return self.full_name

    def __repr__(self) -> str:
        return f"ImageReference({self.full_name})"
