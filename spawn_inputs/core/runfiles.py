"""
Runfiles tree expansion.

A runfiles tree maps a root prefix to a set of `relative path -> artifact`
entries. Each entry lands at `base_directory / root / relative path`:

    None artifact     -> EMPTY_MARKER (force an empty placeholder)
    TREE artifact     -> one entry per expanded member
    FILESET artifact  -> delegated to FilesetResolver, mounted at the entry
    FILE artifact     -> the artifact itself (strict mode rejects directories)
"""
from __future__ import annotations

import logging
from pathlib import PurePosixPath
from typing import MutableMapping, Optional, Sequence

from .artifacts import (
    EMPTY_MARKER,
    Artifact,
    ArtifactKind,
    FilesetSymlink,
    FileType,
    Input,
    RunfilesTree,
    TreeFileArtifact,
)
from .errors import ForbiddenInputError, MissingExpansionError
from .fileset import FilesetResolver
from .interfaces import ArtifactExpander, MetadataProvider
from .paths import add_mapping, validate_relative_path

logger = logging.getLogger(__name__)

_ACCEPTED_TYPES = frozenset({FileType.FILE, FileType.ABSENT})


def fail_if_directory(metadata: MetadataProvider, artifact: Input) -> None:
    """
    Reject an input whose metadata says it is not a regular file.

    Directories are a correctness hazard: dependencies are tracked per
    artifact, so changes to a directory's contents would not invalidate
    the action.

    Raises:
        ForbiddenInputError: If metadata reports anything but FILE or ABSENT
        OSError: Propagated unchanged from the metadata provider
    """
    file_type = metadata.type_of(artifact)
    if file_type not in _ACCEPTED_TYPES:
        logger.debug(f"Rejecting {artifact}: metadata reports {file_type.value}")
        raise ForbiddenInputError(str(artifact.exec_path))


class RunfilesMapper:
    """Expands runfiles trees into input mapping entries."""

    def __init__(self, fileset_resolver: FilesetResolver, strict: bool = False):
        self._fileset_resolver = fileset_resolver
        self._strict = strict

    @property
    def strict(self) -> bool:
        return self._strict

    def add_runfiles_to_inputs(
        self,
        input_map: MutableMapping[PurePosixPath, Input],
        runfiles: RunfilesTree,
        metadata: MetadataProvider,
        expander: ArtifactExpander,
        base_directory: Optional[PurePosixPath] = None,
    ) -> int:
        """
        Write every runfiles entry into input_map.

        Args:
            input_map: Table to write into (later writes replace earlier ones)
            runfiles: root -> (relative path -> artifact or None)
            metadata: Consulted for FILE artifacts in strict mode only
            expander: Source of tree members and fileset links
            base_directory: Prefix for every destination

        Returns:
            Number of entries written

        Raises:
            InvalidPathError: Absolute root or relative path
            ForbiddenInputError: Strict mode and a FILE artifact is a directory
            ForbiddenRelativeSymlinkError: From fileset resolution
            MissingExpansionError: Expander has no data for a tree or fileset
        """
        written = 0
        for root, mappings in runfiles.items():
            root = validate_relative_path(root)
            for relative_path, artifact in mappings.items():
                location = root / validate_relative_path(relative_path)
                written += self._add_entry(
                    input_map, location, artifact, metadata, expander, base_directory
                )
        return written

    def map_runfiles(
        self,
        runfiles: RunfilesTree,
        metadata: MetadataProvider,
        expander: ArtifactExpander,
        base_directory: Optional[PurePosixPath] = None,
    ) -> dict[PurePosixPath, Input]:
        """Expand runfiles on their own into a fresh table."""
        input_map: dict[PurePosixPath, Input] = {}
        self.add_runfiles_to_inputs(input_map, runfiles, metadata, expander, base_directory)
        return input_map

    def _add_entry(
        self,
        input_map: MutableMapping[PurePosixPath, Input],
        location: PurePosixPath,
        artifact: Optional[Artifact],
        metadata: MetadataProvider,
        expander: ArtifactExpander,
        base_directory: Optional[PurePosixPath],
    ) -> int:
        if artifact is None:
            add_mapping(input_map, location, EMPTY_MARKER, base_directory)
            return 1

        if artifact.kind is ArtifactKind.TREE:
            members = expand_tree(expander, artifact)
            for member in members:
                add_mapping(
                    input_map,
                    location / member.parent_relative_path,
                    member,
                    base_directory,
                )
            return len(members)

        if artifact.kind is ArtifactKind.FILESET:
            links = fileset_links(expander, artifact)
            return self._fileset_resolver.add_to_inputs(
                input_map, links, location, base_directory
            )

        if artifact.kind is ArtifactKind.FILE:
            if self._strict:
                fail_if_directory(metadata, artifact)
            add_mapping(input_map, location, artifact, base_directory)
            return 1

        raise ValueError(f"Unknown artifact kind: {artifact.kind!r}")


def expand_tree(expander: ArtifactExpander, artifact: Artifact) -> Sequence[TreeFileArtifact]:
    """Expand a tree artifact, logging a missing expansion as an engine bug."""
    try:
        return expander.expand_tree_members(artifact)
    except MissingExpansionError:
        logger.error(
            f"Internal error: tree artifact {artifact.exec_path} was never "
            f"registered for expansion"
        )
        raise


def fileset_links(expander: ArtifactExpander, artifact: Artifact) -> Sequence[FilesetSymlink]:
    """Fetch a fileset's symlinks, logging a missing expansion as an engine bug."""
    try:
        return expander.fileset_symlinks(artifact)
    except MissingExpansionError:
        logger.error(
            f"Internal error: fileset {artifact.exec_path} was never "
            f"registered for expansion"
        )
        raise
