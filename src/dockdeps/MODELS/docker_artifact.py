"""
Models representing a docker build artifact and its configuration.
"""
from typing import List, Dict, Optional
from pydantic import BaseModel, Field


class DockerArtifact(BaseModel):
    """
    Describes how one image is built from a workspace: where the Dockerfile
    lives, which build arguments are passed, and which registries may be
    reached over plain HTTP when looking up base images.
    """
    workspace: str = "."
    dockerfile: str = "Dockerfile"

    # A None value means "declared without a value", so the Dockerfile's
    # inline ARG default applies.
    build_args: Dict[str, Optional[str]] = Field(default_factory=dict)
    insecure_registries: List[str] = Field(default_factory=list)

    @property
    def insecure_registry_set(self) -> set:
        return set(self.insecure_registries)
