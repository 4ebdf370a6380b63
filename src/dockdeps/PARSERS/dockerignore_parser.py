"""
Parser and matcher for .dockerignore files.
"""
import os
import posixpath
import re
from typing import Iterable, List

import pathspec

from ..errors import IgnoreFileError, InvalidPatternError, WALKING

DOCKERIGNORE = ".dockerignore"


class DockerIgnore:
    """
    Ordered .dockerignore rules, last match wins.

    Docker patterns are relative to the context root, so a pattern without a
    slash only matches at the top level, unlike .gitignore. Patterns are
    anchored with a leading ``/`` before being handed to pathspec's
    gitwildmatch implementation. A pattern matching a directory also matches
    everything below it.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns: List[str] = list(patterns)
        try:
            self._spec = pathspec.PathSpec.from_lines(
                "gitwildmatch",
                [self._anchor(p) for p in self.patterns],
            )
        except (ValueError, re.error) as e:
            raise InvalidPatternError(f"invalid exclude patterns: {e}", operation=WALKING) from e

    @classmethod
    def from_string(cls, content: str) -> "DockerIgnore":
        """
        Reads patterns from .dockerignore content. Comments and blank lines
        are skipped, and each pattern is cleaned the way Docker cleans it.
        """
        patterns = []
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            negate = line.startswith("!")
            if negate:
                line = line[1:].strip()
                if not line:
                    continue

            line = posixpath.normpath(line.replace(os.sep, "/"))
            if len(line) > 1 and line.startswith("/"):
                line = line.lstrip("/")

            patterns.append(f"!{line}" if negate else line)
        return cls(patterns)

    @classmethod
    def load(cls, workspace: str) -> "DockerIgnore":
        """
        Loads ``<workspace>/.dockerignore``. A missing file gives an empty rule set.

        :raises IgnoreFileError: If the file exists but cannot be read.
        """
        path = os.path.join(workspace, DOCKERIGNORE)
        if not os.path.exists(path):
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                return cls.from_string(f.read())
        except (OSError, UnicodeDecodeError) as e:
            raise IgnoreFileError(path, str(e)) from e

    @staticmethod
    def _anchor(pattern: str) -> str:
        if pattern.startswith("!"):
            return "!" + DockerIgnore._anchor(pattern[1:])
        if pattern.startswith("**"):
            return pattern
        return "/" + pattern

    def matches(self, relative_path: str) -> bool:
        """
        Returns True if ``relative_path`` (relative to the context root) is excluded.
        """
        if not self.patterns:
            return False
        path = posixpath.normpath(relative_path.replace(os.sep, "/"))
        return self._spec.match_file(path)
