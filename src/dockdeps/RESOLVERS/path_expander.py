"""
Expansion of COPY/ADD sources into workspace paths.
"""
import glob
import logging
import os
from typing import List

from ..errors import UnmatchedPatternError

logger = logging.getLogger(__name__)


def expand_paths(workspace: str, copied: List[List[str]]) -> List[str]:
    """
    Turns each group of sources into concrete paths relative to the
    workspace. A source naming an existing file or directory is kept as
    written. Anything else is treated as a glob.

    :param workspace: Workspace root.
    :param copied: Source groups, one per COPY/ADD instruction.
    :return: Sorted, de-duplicated relative paths.
    :raises UnmatchedPatternError: If no source of a group matches anything.
    """
    expanded_paths = set()
    for files in copied:
        matches_one = False

        for p in files:
            # Sources are always inside the context, even when written as absolute paths
            rel = p.lstrip("/") or "."
            path = os.path.join(workspace, rel)
            if os.path.exists(path):
                expanded_paths.add(rel)
                matches_one = True
                continue

            matches = glob.glob(rel, root_dir=workspace, include_hidden=True)
            for f in matches:
                expanded_paths.add(os.path.normpath(f))
            if matches:
                matches_one = True

        if not matches_one:
            raise UnmatchedPatternError(files)

    deps = sorted(expanded_paths)
    logger.debug("Found dependencies for dockerfile: %s", deps)
    return deps
