"""
Walks dependency paths in the workspace, applying .dockerignore rules.
"""
import os
import stat
from typing import Iterable, Set

from ..PARSERS.dockerignore_parser import DockerIgnore
from ..errors import MissingDependencyError, WorkspaceError, WALKING


def walk_workspace(workspace: str, excludes: DockerIgnore, deps: Iterable[str]) -> Set[str]:
    """
    Expands dependency paths into the set of files they cover.

    Directories are walked recursively. An ignored directory is skipped
    entirely and ignored files are dropped. The walked directory itself is
    not reported. Plain files are checked on their own. Anything that is
    neither a file nor a directory is skipped.

    :param workspace: Workspace root.
    :param excludes: Ignore rules, matched against workspace-relative paths.
    :param deps: Workspace-relative paths, as returned by ``expand_paths``.
    :return: Workspace-relative file paths.
    :raises MissingDependencyError: If a dependency does not exist.
    """
    files = set()
    for dep in deps:
        dep = os.path.normpath(dep)
        abs_dep = os.path.join(workspace, dep)

        try:
            mode = os.stat(abs_dep).st_mode
        except OSError as e:
            raise MissingDependencyError(abs_dep, e.strerror or str(e)) from e

        if stat.S_ISDIR(mode):
            files.update(_walk_dir(workspace, abs_dep, excludes))
        elif stat.S_ISREG(mode):
            if not excludes.matches(dep):
                files.add(dep)

    return files


def _walk_dir(workspace: str, abs_dep: str, excludes: DockerIgnore) -> Set[str]:
    files = set()

    def on_error(err: OSError):
        raise WorkspaceError(f"walking folder {abs_dep}: {err}", operation=WALKING) from err

    for root, dirnames, filenames in os.walk(abs_dep, onerror=on_error):
        kept = []
        for name in dirnames:
            rel_path = os.path.relpath(os.path.join(root, name), workspace)
            if os.path.islink(os.path.join(root, name)):
                # Links are not followed; they are reported like files
                if not excludes.matches(rel_path):
                    files.add(rel_path)
            elif not excludes.matches(rel_path):
                kept.append(name)
        # Pruning in place stops os.walk from descending
        dirnames[:] = kept

        for name in filenames:
            rel_path = os.path.relpath(os.path.join(root, name), workspace)
            if not excludes.matches(rel_path):
                files.add(rel_path)

    return files
