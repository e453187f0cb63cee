"""
Spawn input mapping.

Converts an action's declared inputs (plain files, tree artifacts, runfiles
trees and fileset symlink trees) into one flat, path-sorted mapping from a
sandbox-relative destination to the input staged there.
"""
from .config import SpawnInputConfig, load_spawn_input_config
from .core import (
    EMPTY_MARKER,
    Artifact,
    ArtifactKind,
    FilesetSymlink,
    FileType,
    ForbiddenInputError,
    ForbiddenRelativeSymlinkError,
    InvalidPathError,
    MissingExpansionError,
    PathInput,
    RelativeSymlinkPolicy,
    SpawnInputError,
    SpawnInputExpander,
    TreeFileArtifact,
)

__version__ = "0.1.0"

__all__ = [
    "SpawnInputConfig",
    "load_spawn_input_config",
    "EMPTY_MARKER",
    "Artifact",
    "ArtifactKind",
    "FilesetSymlink",
    "FileType",
    "ForbiddenInputError",
    "ForbiddenRelativeSymlinkError",
    "InvalidPathError",
    "MissingExpansionError",
    "PathInput",
    "RelativeSymlinkPolicy",
    "SpawnInputError",
    "SpawnInputExpander",
    "TreeFileArtifact",
]
