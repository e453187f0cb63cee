"""
Spawn input mapping.

Turns the inputs of one spawn into a flat, path-sorted mapping from a
sandbox-relative destination to the input staged there. Three phases write
into one call-local table, in this order:

    1. direct inputs      (tree artifacts expanded to their files)
    2. runfiles           (see runfiles.py)
    3. standalone filesets (mounted at the fileset's own exec path)

A later phase silently replaces an earlier entry at the same destination
unless the expander is configured to warn or fail on such conflicts.

The expander performs no I/O itself. File type lookups (strict mode) and
tree/fileset expansion go through the collaborators passed to each call.

Usage:
    expander = SpawnInputExpander(exec_root=Path("/execroot"), strict=True)
    mapping = expander.get_input_mapping(spawn, artifact_expander, PurePosixPath(""), metadata)
"""
from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Literal, Mapping, Optional, Sequence

from .artifacts import (
    Artifact,
    ArtifactKind,
    FilesetSymlink,
    Input,
    RelativeSymlinkPolicy,
    RunfilesTree,
)
from .errors import InputConflictError, SpawnInputError
from .fileset import FilesetResolver
from .interfaces import ArtifactExpander, MetadataProvider, Spawn
from .paths import add_mapping, validate_base_directory
from .runfiles import RunfilesMapper, expand_tree

if TYPE_CHECKING:
    from ..config import SpawnInputConfig

logger = logging.getLogger(__name__)

ConflictMode = Literal["overwrite", "warn", "error"]

PHASE_INPUTS = "inputs"
PHASE_RUNFILES = "runfiles"
PHASE_FILESETS = "filesets"


class InputTable(dict):
    """
    Destination table for a single mapping call.

    Records which phase wrote each destination so a cross-phase overwrite
    with a different input can be reported. Overwrites within one phase are
    always silent.
    """

    def __init__(self, conflict_mode: ConflictMode = "overwrite"):
        super().__init__()
        self.conflict_mode = conflict_mode
        self.phase = PHASE_INPUTS
        self.conflicts: list[PurePosixPath] = []
        self._written_by: dict[PurePosixPath, str] = {}

    def __setitem__(self, path: PurePosixPath, value: Input) -> None:
        previous_phase = self._written_by.get(path)
        if (
            previous_phase is not None
            and previous_phase != self.phase
            and self.conflict_mode != "overwrite"
        ):
            previous = self[path]
            if previous != value:
                self.conflicts.append(path)
                if self.conflict_mode == "error":
                    raise InputConflictError(str(path), previous, value)
                logger.warning(
                    f"{self.phase} entry {value} replaces {previous_phase} "
                    f"entry {previous} at {path}"
                )
        self._written_by[path] = self.phase
        super().__setitem__(path, value)

    def sorted_mapping(self) -> dict[PurePosixPath, Input]:
        return {path: self[path] for path in sorted(self)}


class SpawnInputExpander:
    """
    Builds input mappings for spawns.

    Holds only configuration; every call builds and returns its own table,
    so one instance can serve many worker threads at once.

    Args:
        exec_root: Execution root that fileset targets are resolved against
        strict: Reject runfiles that metadata reports as directories
        relative_symlink_policy: Handling of fileset symlinks escaping the fileset
        conflict_mode: "overwrite" (default), "warn" or "error" for cross-phase
            writes of different inputs to one destination
    """

    def __init__(
        self,
        exec_root: Path | PurePosixPath,
        strict: bool = False,
        relative_symlink_policy: RelativeSymlinkPolicy = RelativeSymlinkPolicy.ERROR,
        conflict_mode: ConflictMode = "overwrite",
    ) -> None:
        self._exec_root = PurePosixPath(exec_root)
        self._strict = strict
        self._relative_symlink_policy = relative_symlink_policy
        self._conflict_mode = conflict_mode
        self._fileset_resolver = FilesetResolver(self._exec_root, relative_symlink_policy)
        self._runfiles_mapper = RunfilesMapper(self._fileset_resolver, strict=strict)

    @classmethod
    def from_config(cls, config: "SpawnInputConfig") -> "SpawnInputExpander":
        return cls(
            exec_root=config.exec_root,
            strict=config.strict,
            relative_symlink_policy=config.relative_symlink_policy,
            conflict_mode=config.conflict_mode,
        )

    @property
    def exec_root(self) -> PurePosixPath:
        return self._exec_root

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def relative_symlink_policy(self) -> RelativeSymlinkPolicy:
        return self._relative_symlink_policy

    @property
    def conflict_mode(self) -> ConflictMode:
        return self._conflict_mode

    @property
    def fileset_resolver(self) -> FilesetResolver:
        return self._fileset_resolver

    @property
    def runfiles_mapper(self) -> RunfilesMapper:
        return self._runfiles_mapper

    def get_input_mapping(
        self,
        spawn: Spawn,
        artifact_expander: ArtifactExpander,
        base_directory: Optional[PurePosixPath],
        metadata: MetadataProvider,
    ) -> dict[PurePosixPath, Input]:
        """
        Map all inputs of a spawn to sandbox-relative destinations.

        Tree artifacts are expanded to their files, runfiles and filesets are
        laid out beneath base_directory. The result never contains None
        values or absolute paths.

        Args:
            spawn: Spawn whose inputs, runfiles and filesets are mapped
            artifact_expander: Source of tree members and fileset links
            base_directory: Prefix for every destination (None or "" for root)
            metadata: File type lookups for strict mode

        Returns:
            Path-sorted dict of destination -> input

        Raises:
            InvalidPathError: A destination or base_directory would be absolute
                or would climb above the sandbox root
            ForbiddenInputError: Strict mode and an input is a directory
            ForbiddenRelativeSymlinkError: A fileset symlink escapes under ERROR
            MissingExpansionError: A tree or fileset was never registered
            InputConflictError: Conflict mode "error" and phases disagree
        """
        base_directory = validate_base_directory(base_directory)
        table = InputTable(self._conflict_mode)

        table.phase = PHASE_INPUTS
        direct_count = self.add_inputs(table, spawn.direct_inputs(), artifact_expander, base_directory)

        table.phase = PHASE_RUNFILES
        runfiles_count = self._runfiles_mapper.add_runfiles_to_inputs(
            table,
            spawn.runfiles_tree(),
            metadata,
            artifact_expander,
            base_directory,
        )

        table.phase = PHASE_FILESETS
        fileset_count = self.add_fileset_manifests(table, spawn.fileset_mappings(), base_directory)

        logger.debug(
            f"Mapped spawn inputs: {direct_count} direct, {runfiles_count} runfiles, "
            f"{fileset_count} fileset entries -> {len(table)} destinations"
            + (f" ({len(table.conflicts)} conflicts)" if table.conflicts else "")
        )
        return table.sorted_mapping()

    def add_inputs(
        self,
        input_map: dict[PurePosixPath, Input],
        inputs: Sequence[Artifact],
        artifact_expander: ArtifactExpander,
        base_directory: Optional[PurePosixPath] = None,
    ) -> int:
        """Write direct inputs at their exec paths, expanding tree artifacts."""
        written = 0
        for artifact in inputs:
            if artifact.kind is ArtifactKind.TREE:
                for member in expand_tree(artifact_expander, artifact):
                    add_mapping(input_map, member.exec_path, member, base_directory)
                    written += 1
            elif artifact.kind is ArtifactKind.FILE:
                add_mapping(input_map, artifact.exec_path, artifact, base_directory)
                written += 1
            elif artifact.kind is ArtifactKind.FILESET:
                raise SpawnInputError(
                    f"Fileset {artifact.exec_path} must be passed as a fileset "
                    f"mapping, not as a direct input"
                )
            else:
                raise ValueError(f"Unknown artifact kind: {artifact.kind!r}")
        return written

    def add_runfiles_to_inputs(
        self,
        runfiles: RunfilesTree,
        metadata: MetadataProvider,
        artifact_expander: ArtifactExpander,
        base_directory: Optional[PurePosixPath] = None,
    ) -> dict[PurePosixPath, Input]:
        """Map only a runfiles tree, into a new unsorted dict."""
        return self._runfiles_mapper.map_runfiles(
            runfiles, metadata, artifact_expander, base_directory
        )

    def add_fileset_manifests(
        self,
        input_map: dict[PurePosixPath, Input],
        fileset_mappings: Mapping[Artifact, Sequence[FilesetSymlink]],
        base_directory: Optional[PurePosixPath] = None,
    ) -> int:
        """Write standalone filesets, each mounted at its own exec path."""
        written = 0
        for fileset, links in fileset_mappings.items():
            if fileset.kind is not ArtifactKind.FILESET:
                raise SpawnInputError(f"{fileset.exec_path} is not a fileset artifact")
            written += self._fileset_resolver.add_to_inputs(
                input_map, links, fileset.exec_path, base_directory
            )
        return written
