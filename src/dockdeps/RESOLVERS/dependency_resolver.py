"""
Dependency resolution for Dockerfile builds: which workspace files does a
build read?
"""
import logging
import os
from typing import AbstractSet, List, Mapping, Optional

from ..PARSERS.dockerfile_parser import DockerfileParser
from ..PARSERS.dockerignore_parser import DockerIgnore, DOCKERIGNORE
from ..REGISTRY.image_fetcher import ImageFetcher, RegistryImageFetcher
from ..errors import WorkspaceError, PARSING
from .build_args import expand_build_args
from .copy_extractor import copied_files
from .onbuild import onbuild_instructions
from .path_expander import expand_paths
from .workspace_walker import walk_workspace

logger = logging.getLogger(__name__)


def normalize_dockerfile_path(context: str, dockerfile: str) -> str:
    """
    Returns the absolute path to the dockerfile. A relative path is taken
    relative to ``context`` unless it already starts with it.
    """
    if os.path.isabs(dockerfile):
        return dockerfile

    if not dockerfile.startswith(context):
        dockerfile = os.path.join(context, dockerfile)
    return os.path.abspath(dockerfile)


class DependencyResolver:
    """
    Resolves the workspace files a Dockerfile build depends on.

    The resolver holds no per-build state, so one instance can serve any
    number of builds. The image fetcher is shared across them.
    """
    def __init__(self, fetcher: Optional[ImageFetcher] = None, parser: Optional[DockerfileParser] = None):
        """
        :param fetcher: Looks up ONBUILD triggers of base images.
            Defaults to a registry backed fetcher.
        :param parser: Dockerfile parser.
        """
        self.fetcher = fetcher or RegistryImageFetcher()
        self.parser = parser or DockerfileParser()

    def read_dockerfile(
        self,
        workspace: str,
        abs_dockerfile_path: str,
        build_args: Mapping[str, Optional[str]],
        insecure_registries: AbstractSet[str],
    ) -> List[str]:
        """
        Parses the Dockerfile and returns the COPY/ADD sources it names,
        expanded against the workspace.
        """
        try:
            instructions = self.parser.parse(abs_dockerfile_path)
        except (OSError, UnicodeDecodeError) as e:
            raise WorkspaceError(f"opening dockerfile {abs_dockerfile_path}: {e}", operation=PARSING) from e

        expand_build_args(instructions, build_args)

        triggers = onbuild_instructions(instructions, self.fetcher, insecure_registries, self.parser)

        copied = copied_files(triggers + instructions)
        return expand_paths(workspace, copied)

    def resolve(
        self,
        workspace: str,
        dockerfile_path: str,
        build_args: Optional[Mapping[str, Optional[str]]] = None,
        insecure_registries: AbstractSet[str] = frozenset(),
    ) -> List[str]:
        """
        Finds the source dependencies of a Dockerfile build.

        :param workspace: The build context directory.
        :param dockerfile_path: Dockerfile location, absolute or relative to the workspace.
        :param build_args: Build argument values; values are templates.
        :param insecure_registries: Registries reached over plain HTTP.
        :return: Sorted paths, relative to the workspace. Always contains the
            Dockerfile and never contains .dockerignore.
        """
        abs_dockerfile_path = normalize_dockerfile_path(workspace, dockerfile_path)

        deps = self.read_dockerfile(workspace, abs_dockerfile_path, build_args or {}, insecure_registries)

        excludes = DockerIgnore.load(workspace)
        files = walk_workspace(workspace, excludes, deps)

        # The daemon needs the Dockerfile even when it is .dockerignored
        files.add(os.path.relpath(abs_dockerfile_path, os.path.abspath(workspace)))
        files.discard(DOCKERIGNORE)

        dependencies = sorted(files)
        logger.debug("Dependencies of %s: %s", abs_dockerfile_path, dependencies)
        return dependencies


def get_dependencies(
    workspace: str,
    dockerfile_path: str,
    build_args: Optional[Mapping[str, Optional[str]]] = None,
    insecure_registries: AbstractSet[str] = frozenset(),
    fetcher: Optional[ImageFetcher] = None,
) -> List[str]:
    """
    Finds the source dependencies of a Dockerfile build. All paths are
    relative to the workspace. See ``DependencyResolver.resolve``.
    """
    resolver = DependencyResolver(fetcher=fetcher)
    return resolver.resolve(workspace, dockerfile_path, build_args, insecure_registries)
