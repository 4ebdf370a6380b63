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
Base image ONBUILD trigger lookup.

The dependency resolver only needs one thing from a base image: the list of
ONBUILD triggers in its config. Anything callable as
``fetcher(image, insecure_registries) -> List[str]`` can be used, which is
how tests swap in canned answers.
"""

import logging
from typing import AbstractSet, Callable, List, Optional

from .image_reference import ImageReference
from .registry_client import RegistryClient
from ..errors import ImageFetchError

logger = logging.getLogger(__name__)

ImageFetcher = Callable[[str, AbstractSet[str]], List[str]]


class RegistryImageFetcher:
    """
    Reads ONBUILD triggers from image configs in remote registries.

    Construct one per process and pass it to every resolution; the
    underlying client keeps registry auth tokens between calls.
    """

    def __init__(self, client: Optional[RegistryClient] = None):
        self.client = client or RegistryClient()

    def fetch_on_build(self, image: str, insecure_registries: AbstractSet[str] = frozenset()) -> List[str]:
        """
        Args:
            image: Image reference exactly as written in the FROM line.
            insecure_registries: Registries reached over plain HTTP.

        Returns:
            The image's ONBUILD triggers, possibly empty.

        Raises:
            ImageFetchError: If the reference is invalid or the registry lookup fails.
        """
        try:
            ref = ImageReference.parse(image, insecure_registries)
            logger.debug("Fetching image config for %r from %s", ref, ref.registry_url)
            config = self.client.get_image_config(ref)
        except (OSError, ValueError, KeyError) as e:
            raise ImageFetchError(image, str(e)) from e

        container_config = config.get("config") or {}
        return list(container_config.get("OnBuild") or [])

    def __call__(self, image: str, insecure_registries: AbstractSet[str] = frozenset()) -> List[str]:
        return self.fetch_on_build(image, insecure_registries)
