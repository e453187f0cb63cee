"""
Sandbox-relative path handling.

Destinations in an input mapping are always relative to the sandbox root.
Destinations are normalized lexically before they are written. An absolute
destination, or one whose ".." segments climb above the sandbox root, means a
rule upstream produced a bad declaration, so it is rejected rather than
re-rooted.
"""
from __future__ import annotations

from pathlib import PurePosixPath
from typing import MutableMapping, Optional

from .artifacts import Input
from .errors import InvalidPathError

EMPTY_PATH = PurePosixPath("")


def validate_relative_path(path: str | PurePosixPath) -> PurePosixPath:
    """
    Validate a sandbox-relative path and return it as a PurePosixPath.

    Args:
        path: Candidate path (str or PurePosixPath)

    Returns:
        The path, unchanged apart from type

    Raises:
        InvalidPathError: If the path is absolute, has a drive prefix or
            contains NUL bytes
    """
    raw = str(path)
    if "\x00" in raw:
        raise InvalidPathError(
            f"Path contains null bytes: {raw!r}",
            path=raw,
            reason="NULL_BYTES",
        )

    candidate = PurePosixPath(raw)
    if candidate.is_absolute():
        raise InvalidPathError(
            f"Destination must be sandbox-relative: {raw}",
            path=raw,
            reason="ABSOLUTE_PATH",
        )
    if candidate.parts and candidate.parts[0].endswith(":"):
        raise InvalidPathError(
            f"Destination must not carry a drive prefix: {raw}",
            path=raw,
            reason="DRIVE_PREFIX",
        )
    return candidate


def validate_base_directory(base_directory: Optional[str | PurePosixPath]) -> PurePosixPath:
    """
    Validate and normalize the prefix applied to every destination.

    None and "" both mean the sandbox root.

    Raises:
        InvalidPathError: If the base is absolute, has a drive prefix,
            contains NUL bytes or climbs above the sandbox root
    """
    if base_directory is None:
        return EMPTY_PATH
    base = validate_relative_path(base_directory)
    if escapes_root(base):
        raise InvalidPathError(
            f"Base directory leaves the sandbox root: {base}",
            path=str(base),
            reason="OUTSIDE_SANDBOX",
        )
    return normalize_relative(base)


def prefix_path(
    base_directory: Optional[PurePosixPath],
    location: str | PurePosixPath,
) -> PurePosixPath:
    """
    Join a validated relative location beneath base_directory.

    The result is normalized, so two spellings of one location name the
    same destination.

    Raises:
        InvalidPathError: If the location is not sandbox-relative, climbs
            above base_directory or names the root itself
    """
    relative = validate_relative_path(location)
    if escapes_root(relative):
        raise InvalidPathError(
            f"Destination leaves the sandbox root: {relative}",
            path=str(relative),
            reason="OUTSIDE_SANDBOX",
        )
    destination = normalize_relative(validate_base_directory(base_directory) / relative)
    if destination == EMPTY_PATH:
        raise InvalidPathError(
            f"Destination names the sandbox root: {location}",
            path=str(location),
            reason="EMPTY_PATH",
        )
    return destination


def add_mapping(
    input_map: MutableMapping[PurePosixPath, Input],
    target_location: str | PurePosixPath,
    value: Input,
    base_directory: Optional[PurePosixPath] = None,
) -> PurePosixPath:
    """
    Write one destination entry, replacing any earlier entry at the same path.

    The location is validated before the table is touched.

    Returns:
        The destination path that was written
    """
    destination = prefix_path(base_directory, target_location)
    input_map[destination] = value
    return destination


def escapes_root(path: PurePosixPath) -> bool:
    """True if normalizing ".." segments would climb above the path's root."""
    depth = 0
    for part in path.parts:
        if part == "..":
            depth -= 1
            if depth < 0:
                return True
        elif part not in ("", "."):
            depth += 1
    return False


def normalize_relative(path: PurePosixPath) -> PurePosixPath:
    """
    Collapse "." and ".." segments lexically.

    Callers check escapes_root() first; leading ".." segments that cannot be
    collapsed are kept.
    """
    parts: list[str] = []
    for part in path.parts:
        if part == ".":
            continue
        if part == ".." and parts and parts[-1] != "..":
            parts.pop()
        else:
            parts.append(part)
    return PurePosixPath(*parts) if parts else EMPTY_PATH


def is_within(path: PurePosixPath, root: PurePosixPath) -> bool:
    """True if the normalized path equals root or lies beneath it."""
    normalized = normalize_relative(path)
    root = normalize_relative(root)
    if root == EMPTY_PATH:
        return not escapes_root(path)
    return normalized == root or root in normalized.parents
