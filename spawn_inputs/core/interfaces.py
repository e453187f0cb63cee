"""
Collaborator interfaces consumed by the input mapping engine.

The engine never looks these up globally; every mapping call receives the
expander and metadata provider it should use. Implementations provided here:

- InMemoryArtifactExpander: registry of tree members and fileset links
- StaticMetadataProvider: fixed exec path -> FileType table
- FilesystemMetadataProvider: stat() based lookups under an execution root
- SimpleSpawn: plain container implementing the Spawn protocol
"""
from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping, Optional, Protocol, Sequence, runtime_checkable

from .artifacts import (
    EMPTY_MARKER,
    Artifact,
    FileType,
    FilesetSymlink,
    Input,
    RunfilesTree,
    TreeFileArtifact,
    tree_member,
)
from .errors import MissingExpansionError

logger = logging.getLogger(__name__)


@runtime_checkable
class ArtifactExpander(Protocol):
    """Expands directory-valued artifacts into their members."""

    def expand_tree_members(self, artifact: Artifact) -> Sequence[TreeFileArtifact]:
        ...

    def fileset_symlinks(self, artifact: Artifact) -> Sequence[FilesetSymlink]:
        ...


@runtime_checkable
class MetadataProvider(Protocol):
    """Reports the file type backing an input."""

    def type_of(self, value: Input) -> FileType:
        ...


@runtime_checkable
class Spawn(Protocol):
    """Action-level view of one subprocess invocation's inputs."""

    def direct_inputs(self) -> Sequence[Artifact]:
        ...

    def runfiles_tree(self) -> RunfilesTree:
        ...

    def fileset_mappings(self) -> Mapping[Artifact, Sequence[FilesetSymlink]]:
        ...


class InMemoryArtifactExpander:
    """ArtifactExpander backed by explicit registrations."""

    def __init__(self) -> None:
        self._trees: dict[Artifact, list[TreeFileArtifact]] = {}
        self._filesets: dict[Artifact, list[FilesetSymlink]] = {}

    def register_tree(
        self,
        artifact: Artifact,
        members: Iterable[str | PurePosixPath],
    ) -> None:
        self._trees[artifact] = [tree_member(artifact, member) for member in members]

    def register_fileset(
        self,
        artifact: Artifact,
        links: Iterable[FilesetSymlink],
    ) -> None:
        self._filesets[artifact] = list(links)

    def expand_tree_members(self, artifact: Artifact) -> Sequence[TreeFileArtifact]:
        try:
            return list(self._trees[artifact])
        except KeyError:
            raise MissingExpansionError(str(artifact.exec_path), "tree") from None

    def fileset_symlinks(self, artifact: Artifact) -> Sequence[FilesetSymlink]:
        try:
            return list(self._filesets[artifact])
        except KeyError:
            raise MissingExpansionError(str(artifact.exec_path), "fileset") from None


class StaticMetadataProvider:
    """
    MetadataProvider answering from a fixed table keyed by exec path.

    Paths missing from the table report `default`.
    """

    def __init__(
        self,
        types: Optional[Mapping[str | PurePosixPath, FileType]] = None,
        default: FileType = FileType.ABSENT,
    ) -> None:
        self._types = {PurePosixPath(path): file_type for path, file_type in (types or {}).items()}
        self._default = default

    def set_type(self, path: str | PurePosixPath, file_type: FileType) -> None:
        self._types[PurePosixPath(path)] = file_type

    def type_of(self, value: Input) -> FileType:
        if value is EMPTY_MARKER:
            return FileType.ABSENT
        return self._types.get(value.exec_path, self._default)


class FilesystemMetadataProvider:
    """
    MetadataProvider that stats inputs beneath an execution root.

    Symlinks are followed. A dangling symlink reports SYMLINK, a missing path
    ABSENT. Any other OSError (permissions, I/O) propagates to the caller.
    """

    def __init__(self, exec_root: Path):
        self._exec_root = Path(exec_root)

    @property
    def exec_root(self) -> Path:
        return self._exec_root

    def _real_path(self, value: Input) -> Path:
        exec_path = value.exec_path
        if exec_path.is_absolute():
            return Path(exec_path)
        return self._exec_root / exec_path

    def type_of(self, value: Input) -> FileType:
        if value is EMPTY_MARKER:
            return FileType.ABSENT

        real_path = self._real_path(value)
        try:
            st = os.stat(real_path)
        except FileNotFoundError:
            if os.path.lexists(real_path):
                logger.debug(f"Dangling symlink at {real_path}")
                return FileType.SYMLINK
            return FileType.ABSENT

        if stat.S_ISDIR(st.st_mode):
            return FileType.DIRECTORY
        return FileType.FILE


@dataclass
class SimpleSpawn:
    """Spawn implementation holding its inputs directly."""

    inputs: list[Artifact] = field(default_factory=list)
    runfiles: dict[PurePosixPath, dict[PurePosixPath, Optional[Artifact]]] = field(default_factory=dict)
    filesets: dict[Artifact, list[FilesetSymlink]] = field(default_factory=dict)
    description: str = ""

    def direct_inputs(self) -> Sequence[Artifact]:
        return self.inputs

    def runfiles_tree(self) -> RunfilesTree:
        return self.runfiles

    def fileset_mappings(self) -> Mapping[Artifact, Sequence[FilesetSymlink]]:
        return self.filesets
