"""
Value types for spawn input mapping.

Everything here is an immutable, action-scoped value. An input in the final
destination table is one of:

    Artifact (kind FILE)   - a declared regular file
    TreeFileArtifact       - one expanded member of a TREE artifact
    PathInput              - a concrete location produced by fileset resolution
    EMPTY_MARKER           - "no content": create an empty placeholder
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Mapping, Optional, Union


class ArtifactKind(Enum):
    """Closed set of artifact kinds; the kind selects the expansion path."""
    FILE = "file"
    TREE = "tree"
    FILESET = "fileset"


class FileType(Enum):
    """File type as reported by a MetadataProvider."""
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    ABSENT = "absent"


class RelativeSymlinkPolicy(Enum):
    """
    Handling of fileset symlinks whose relative target escapes the fileset.

    ERROR: reject the whole mapping
    RESOLVE: rewrite to an absolute target under the execution root
    IGNORE: drop the entry
    """
    ERROR = "error"
    RESOLVE = "resolve"
    IGNORE = "ignore"


@dataclass(frozen=True)
class Artifact:
    """A declared build input/output with exactly one kind."""

    exec_path: PurePosixPath
    kind: ArtifactKind = ArtifactKind.FILE

    @property
    def is_tree(self) -> bool:
        return self.kind is ArtifactKind.TREE

    @property
    def is_fileset(self) -> bool:
        return self.kind is ArtifactKind.FILESET

    def __str__(self) -> str:
        return str(self.exec_path)


@dataclass(frozen=True)
class TreeFileArtifact:
    """A regular file that is one member of an expanded tree artifact."""

    parent: Artifact
    parent_relative_path: PurePosixPath

    @property
    def exec_path(self) -> PurePosixPath:
        return self.parent.exec_path / self.parent_relative_path

    def __str__(self) -> str:
        return str(self.exec_path)


@dataclass(frozen=True)
class PathInput:
    """A regular file identified only by its location on disk."""

    path: PurePosixPath

    @property
    def exec_path(self) -> PurePosixPath:
        return self.path

    def __str__(self) -> str:
        return str(self.path)


class EmptyMarker:
    """Sentinel input: materialize an empty placeholder at the destination."""

    _instance: Optional["EmptyMarker"] = None

    def __new__(cls) -> "EmptyMarker":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EMPTY_MARKER"

    def __str__(self) -> str:
        return ""


EMPTY_MARKER = EmptyMarker()


@dataclass(frozen=True)
class FilesetSymlink:
    """
    One declared entry of a fileset.

    Attributes:
        name: Destination relative to the fileset mount point
        target: Link target; None or "" means an intentionally empty entry
        relative_to_exec_root: The (relative) target is anchored at the
            execution root rather than at the link's own directory
    """

    name: PurePosixPath
    target: Optional[str] = None
    relative_to_exec_root: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.target

    @property
    def is_relative(self) -> bool:
        """True for a non-empty relative target interpreted from the link's directory."""
        return (
            not self.is_empty
            and not PurePosixPath(self.target).is_absolute()
            and not self.relative_to_exec_root
        )


Input = Union[Artifact, TreeFileArtifact, PathInput, EmptyMarker]

# root -> (relative path -> artifact or None)
RunfilesTree = Mapping[PurePosixPath, Mapping[PurePosixPath, Optional[Artifact]]]


def file_artifact(exec_path: str | PurePosixPath) -> Artifact:
    return Artifact(PurePosixPath(exec_path), ArtifactKind.FILE)


def tree_artifact(exec_path: str | PurePosixPath) -> Artifact:
    return Artifact(PurePosixPath(exec_path), ArtifactKind.TREE)


def fileset_artifact(exec_path: str | PurePosixPath) -> Artifact:
    return Artifact(PurePosixPath(exec_path), ArtifactKind.FILESET)


def tree_member(parent: Artifact, parent_relative_path: str | PurePosixPath) -> TreeFileArtifact:
    return TreeFileArtifact(parent, PurePosixPath(parent_relative_path))


def describe_input(value: Input) -> str:
    """Short kind label used in manifests and diagnostics."""
    if value is EMPTY_MARKER:
        return "empty"
    if isinstance(value, TreeFileArtifact):
        return "tree_file"
    if isinstance(value, PathInput):
        return "path"
    return value.kind.value
