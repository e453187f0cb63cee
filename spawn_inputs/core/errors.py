"""
Exception hierarchy for spawn input mapping.

Two families are kept apart:

- User-fixable errors (ForbiddenActionInputError, InvalidPathError): a rule
  declared an input that cannot be staged. Messages carry the offending path
  so the action owner can fix the declaration.
- Internal invariant violations (InternalInvariantError): the build graph
  handed the engine something it should never see, e.g. a tree artifact that
  was never registered for expansion. These indicate a bug upstream.
"""
from __future__ import annotations

from typing import Any


class SpawnInputError(Exception):
    """Base class for all spawn input mapping failures."""


class InvalidPathError(SpawnInputError):
    """Raised when a destination path is not sandbox-relative."""

    def __init__(self, message: str, path: str, reason: str):
        super().__init__(message)
        self.path = path
        self.reason = reason


class ForbiddenActionInputError(SpawnInputError):
    """Raised when an action declares an input that may not be staged."""


class ForbiddenInputError(ForbiddenActionInputError):
    """Raised in strict mode when a plain input is not a regular file."""

    def __init__(self, path: str):
        super().__init__(f"Not a file: {path}")
        self.path = path


class ForbiddenRelativeSymlinkError(ForbiddenActionInputError):
    """Raised when a fileset symlink escapes its fileset under the ERROR policy."""

    def __init__(self, target: str, location: str):
        super().__init__(
            f"Fileset symlink {location} -> {target} is not allowed to "
            f"point outside the fileset"
        )
        self.target = target
        self.location = location


class InternalInvariantError(SpawnInputError):
    """Raised when the engine receives state that upstream should never produce."""


class MissingExpansionError(InternalInvariantError):
    """Raised when a tree or fileset artifact has no registered expansion."""

    def __init__(self, exec_path: str, kind: str):
        super().__init__(f"No {kind} expansion registered for {exec_path}")
        self.exec_path = exec_path
        self.kind = kind


class InputConflictError(SpawnInputError):
    """Raised when two phases map different inputs to one destination."""

    def __init__(self, path: str, previous: Any, replacement: Any):
        super().__init__(
            f"Conflicting inputs for {path}: {previous} would be replaced by {replacement}"
        )
        self.path = path
        self.previous = previous
        self.replacement = replacement


class ConfigError(RuntimeError):
    """Raised when the engine configuration cannot be loaded."""
