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
Parsers for docker artifact YAML files.

    workspace: app
    dockerfile: Dockerfile.prod
    buildArgs:
      VERSION: "1.2"
      USER_NAME: "{{ USER }}"
    insecureRegistries:
      - localhost:5000
"""
import logging
import os
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from ..MODELS.docker_artifact import DockerArtifact
from ..UTILS.string_interpolation import EnvironmentInterpolator
from ..errors import DefinitionError, PARSING

logger = logging.getLogger(__name__)

# YAML keys that differ from the model's field names
KEY_ALIASES = {
    "buildArgs": "build_args",
    "insecureRegistries": "insecure_registries",
    "dockerfilePath": "dockerfile",
    "context": "workspace",
}


class ArtifactParser:
    """
    Parser for docker artifact files.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = context if context is not None else dict(os.environ)

    def parse(self, artifact_path: str) -> DockerArtifact:
        """
        Parses an artifact file from a path. A relative workspace is taken
        relative to the file's directory.

        :param artifact_path: Path to the artifact file.
        :return: Parsed artifact.
        """
        with open(artifact_path, 'r') as f:
            content = f.read()
        artifact = self.parse_from_string(content)
        if not os.path.isabs(artifact.workspace):
            base = os.path.dirname(artifact_path)
            artifact.workspace = os.path.normpath(os.path.join(base, artifact.workspace))
        return artifact

    def parse_from_string(self, content: str) -> DockerArtifact:
        """
        Parses an artifact from a string.

        :param content: YAML content of the artifact file.
        :return: Parsed artifact.
        :raises DefinitionError: If the YAML is invalid or does not describe an artifact.
        """
        try:
            content = EnvironmentInterpolator.interpolate(content, self.context)
        except KeyError as e:
            logger.warning("Artifact file used without interpolation: %s", e)

        try:
            data = yaml.safe_load(content) or {}
        except yaml.YAMLError as e:
            raise DefinitionError(f"invalid artifact YAML: {e}", operation=PARSING) from e

        if not isinstance(data, dict):
            raise DefinitionError("artifact file must contain a mapping", operation=PARSING)

        try:
            return DockerArtifact(**self._normalize_keys(data))
        except ValidationError as e:
            raise DefinitionError(f"invalid artifact: {e}", operation=PARSING) from e

    @staticmethod
    def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
        normalized = {KEY_ALIASES.get(str(k), str(k)): v for k, v in data.items()}
        build_args = normalized.get("build_args") or {}
        if not isinstance(build_args, dict):
            raise DefinitionError("buildArgs must be a mapping", operation=PARSING)
        # YAML scalars such as 1.2 or true come back typed; build args are strings
        normalized["build_args"] = {
            str(k): (None if v is None else str(v)) for k, v in build_args.items()
        }
        return normalized
