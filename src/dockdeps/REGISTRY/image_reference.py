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
Base image references as written in FROM lines, e.g. 'nginx:latest',
'localhost:5000/team/app' or 'gcr.io/project/image@sha256:...'.
"""

from typing import AbstractSet, Optional
from dataclasses import dataclass, replace

DOCKER_HUB_API = "https://registry-1.docker.io"


@dataclass
class ImageReference:
    """
    A base image reference, split into the parts needed to reach its
    manifest in a registry.

    Examples:
        - python -> docker.io/library/python:latest
        - python:3 -> docker.io/library/python:3
        - team/base:onbuild -> docker.io/team/base:onbuild
        - localhost:5000/app -> localhost:5000/app:latest (http when insecure)
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None
    insecure: bool = False

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str, insecure_registries: AbstractSet[str] = frozenset()) -> "ImageReference":
        """
        Args:
            reference: Image name exactly as written in the Dockerfile.
            insecure_registries: Registries reached over plain HTTP.

        Raises:
            ValueError: If the reference is empty.
        """
        if not reference:
            raise ValueError("Empty image reference")

        name, _, digest = reference.partition("@")

        tag = None
        head, sep, tail = name.rpartition(":")
        # A colon followed by a slash is a registry port, not a tag
        if sep and "/" not in tail:
            name, tag = head, tail

        first, _, rest = name.partition("/")
        if not rest:
            registry, repository = cls.DEFAULT_REGISTRY, f"library/{name}"
        elif "." in first or ":" in first or first == "localhost":
            registry, repository = first, rest
        else:
            registry, repository = cls.DEFAULT_REGISTRY, name

        return cls(
            registry=registry,
            repository=repository,
            tag=tag or (None if digest else cls.DEFAULT_TAG),
            digest=digest or None,
            insecure=registry in insecure_registries,
        )

    def with_digest(self, digest: str) -> "ImageReference":
        """Same repository, pinned to a manifest digest."""
        return replace(self, tag=None, digest=digest)

    def _qualified(self, name: str) -> str:
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    @property
    def full_name(self) -> str:
        return self._qualified(f"{self.registry}/{self.repository}")

    @property
    def short_name(self) -> str:
        """Name as a user would write it; Docker Hub needs no registry prefix."""
        if self.registry != self.DEFAULT_REGISTRY:
            return self.full_name
        return self._qualified(self.repository.removeprefix("library/"))

    @property
    def registry_url(self) -> str:
        """Base URL of the registry's v2 API."""
        if self.registry == self.DEFAULT_REGISTRY:
            return DOCKER_HUB_API
        if "://" in self.registry:
            return self.registry
        return f"{'http' if self.insecure else 'https'}://{self.registry}"

    def __str__(self) -> str:
        return self.short_name

    def __repr__(self) -> str:
        return f"ImageReference({self.full_name})"
