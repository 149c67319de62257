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
Reads the environment variables and arguments an image declares.
"""
import logging

from .image_reference import ImageReference
from ..MODELS.container_metadata import ContainerMetadata
from ..MODELS.errors import DeployError

logger = logging.getLogger(__name__)


class ImageInspector:
    """
    Extracts ContainerMetadata from an image's config blob in the registry.
    """

    def __init__(self, registry):
        """
        :param registry: A RegistryClient (or anything with get_manifest/get_config).
        """
        self.registry = registry

    def inspect(self, ref: ImageReference) -> ContainerMetadata:
        """
        Return the image's declared configuration.
        Failures are logged and produce empty metadata; they never abort a deployment.
        """
        try:
            manifest = self.registry.get_manifest(ref)
            config = self.registry.get_config(ref, manifest)
            metadata = ContainerMetadata.from_image_config(config)
        except (DeployError, ValueError, KeyError, TypeError) as e:
            logger.warning("Unable to read configuration of image %s: %s", ref, e)
            return ContainerMetadata()

        logger.debug(
            "Image %s declares %d environment variables and %d arguments",
            ref,
            len(metadata.env_vars),
            len(metadata.arguments),
        )
        return metadata
