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
Read-only Docker Registry HTTP API V2 client.

Only two calls are needed to learn a base image's ONBUILD triggers: the
manifest for a tag (narrowed to this platform when the tag is a manifest
list) and the config blob it points to.
"""

import json
import logging
import platform
from typing import Optional, Dict, Any, List, Tuple
from urllib.request import urlopen, Request
from urllib.error import HTTPError
from urllib.parse import urlencode

from .image_reference import ImageReference

logger = logging.getLogger(__name__)

DOCKER_HUB_AUTH = "https://auth.docker.io/token"

MANIFEST_LIST_TYPES = [
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.index.v1+json",
]

MANIFEST_TYPES = [
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
] + MANIFEST_LIST_TYPES

# platform.machine() names -> OCI architecture names
ARCH_MAP = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "armv7l": "arm",
    "i386": "386",
    "i686": "386",
}


def _is_manifest_list(manifest: Dict[str, Any]) -> bool:
    if manifest.get("mediaType") in MANIFEST_LIST_TYPES:
        return True
    # Old registries omit mediaType
    return "manifests" in manifest and "config" not in manifest


def _current_platform() -> Tuple[str, str]:
    arch = platform.machine().lower()
    return platform.system().lower(), ARCH_MAP.get(arch, arch)


class RegistryClient:
    """
    Fetches manifests and image configs from Docker Hub and other
    OCI-compatible registries.

    Docker Hub pull tokens are cached per repository for the life of the
    client. Other registries are read anonymously.
    """

    def __init__(self, timeout: float = 60.0):
        """
        Args:
            timeout: Socket timeout in seconds for each request.
        """
        self.timeout = timeout
        self._hub_tokens: Dict[str, str] = {}

    def _authorization(self, ref: ImageReference) -> Optional[str]:
        if ref.registry != ImageReference.DEFAULT_REGISTRY:
            return None

        if ref.repository not in self._hub_tokens:
            self._hub_tokens[ref.repository] = self._hub_token(ref.repository)
        return self._hub_tokens[ref.repository]

    def _hub_token(self, repository: str) -> str:
        """Asks the Docker Hub auth service for a pull token."""
        query = urlencode({"service": "registry.docker.io", "scope": f"repository:{repository}:pull"})
        request = Request(f"{DOCKER_HUB_AUTH}?{query}")

        with urlopen(request, timeout=self.timeout) as response:
            return "Bearer " + json.loads(response.read().decode())["token"]

    def _make_request(
        self, url: str, ref: ImageReference, accept: Optional[str] = None, retry_auth: bool = True
    ) -> Tuple[bytes, Dict[str, str]]:
        """GET ``url`` with the registry's auth; returns body and headers."""
        headers = {}
        authorization = self._authorization(ref)
        if authorization:
            headers["Authorization"] = authorization
        if accept:
            headers["Accept"] = accept

        logger.debug("GET %s", url)
        try:
            with urlopen(Request(url, headers=headers), timeout=self.timeout) as response:
                return response.read(), dict(response.headers)
        except HTTPError as e:
            # Hub tokens expire; get a new one and try once more
            if e.code == 401 and retry_auth and self._hub_tokens.pop(ref.repository, None):
                return self._make_request(url, ref, accept, retry_auth=False)
            raise

    def _get_json(self, url: str, ref: ImageReference, accept: Optional[str] = None) -> Dict[str, Any]:
        content, _ = self._make_request(url, ref, accept)
        return json.loads(content.decode())

    def get_manifest(self, ref: ImageReference) -> Dict[str, Any]:
        """
        Returns the image manifest for ``ref``. A manifest list is resolved
        to the entry for the current platform.
        """
        url = f"{ref.registry_url}/v2/{ref.repository}/manifests/{ref.digest or ref.tag}"
        manifest = self._get_json(url, ref, ", ".join(MANIFEST_TYPES))

        if _is_manifest_list(manifest):
            digest = self._select_platform_manifest(ref, manifest.get("manifests", []))
            return self.get_manifest(ref.with_digest(digest))
        return manifest

    def _select_platform_manifest(self, ref: ImageReference, entries: List[Dict[str, Any]]) -> str:
        """Digest of the entry matching this machine, else the first entry."""
        if not entries:
            raise ValueError(f"No suitable manifest found for {ref.full_name}")

        os_name, arch = _current_platform()
        for entry in entries:
            entry_platform = entry.get("platform", {})
            if (entry_platform.get("os"), entry_platform.get("architecture")) == (os_name, arch):
                return entry["digest"]

        logger.debug("No %s/%s manifest for %s, using the first entry", os_name, arch, ref)
        return entries[0]["digest"]

    def get_config(self, ref: ImageReference, manifest: Dict[str, Any]) -> Dict[str, Any]:
        """Fetches the config blob a manifest points to."""
        digest = manifest.get("config", {}).get("digest")
        if not digest:
            raise ValueError("No config digest in manifest")
        return self._get_json(f"{ref.registry_url}/v2/{ref.repository}/blobs/{digest}", ref)

    def get_image_config(self, ref: ImageReference) -> Dict[str, Any]:
        """Manifest then config, in one call."""
        return self.get_config(ref, self.get_manifest(ref))
