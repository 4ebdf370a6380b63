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
Exception classes for dependency resolution and context archiving.

Every error carries the operation it happened in, so a failure can be
located from its message alone:

    walking: stating file /src/app/missing.txt: No such file or directory
"""

PARSING = "parsing"
SUBSTITUTION = "substitution"
TRIGGER_RESOLUTION = "trigger resolution"
EXTRACTION = "extraction"
EXPANSION = "expansion"
WALKING = "walking"
ARCHIVING = "archiving"


class DockDepsError(Exception):
    """
    Base exception for all dockdeps errors.

    Attributes:
        message: Human-readable error message
        operation: The resolution phase that failed
    """

    def __init__(self, message: str, operation: str = ""):
        self.message = message
        self.operation = operation
        super().__init__(f"{operation}: {message}" if operation else message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(operation='{self.operation}', message='{self.message}')"


class DefinitionError(DockDepsError):
    """
    The build definition itself is wrong: malformed Dockerfile, bad build
    argument template, or a COPY source that matches nothing.
    """


class DockerfileParseError(DefinitionError):
    def __init__(self, message: str):
        super().__init__(message, operation=PARSING)


class InvalidBuildArgError(DefinitionError):
    """Raised when a build argument template cannot be rendered."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"invalid build argument value for {key}: {reason}", operation=SUBSTITUTION)


class UnmatchedPatternError(DefinitionError):
    """Raised when no source of a COPY/ADD instruction matches a file."""

    def __init__(self, patterns):
        self.patterns = list(patterns)
        super().__init__(
            f"file pattern {self.patterns} must match at least one file",
            operation=EXPANSION,
        )


class InvalidPatternError(DefinitionError):
    pass


class WorkspaceError(DockDepsError):
    """
    The workspace does not look like the definition says it should:
    a dependency vanished, the ignore file is unreadable, or archive I/O failed.
    """


class MissingDependencyError(WorkspaceError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"stating file {path}: {reason}", operation=WALKING)


class IgnoreFileError(WorkspaceError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"reading {path}: {reason}", operation=WALKING)


class ArchiveError(WorkspaceError):
    def __init__(self, message: str):
        super().__init__(message, operation=ARCHIVING)


class ImageFetchError(DockDepsError):
    """
    Raised by image config fetchers. The ONBUILD resolver downgrades it
    to a warning.
    """

    def __init__(self, image: str, reason: str):
        self.image = image
        super().__init__(f"retrieving image {image}: {reason}", operation=TRIGGER_RESOLUTION)
