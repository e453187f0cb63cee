"""
Core input mapping engine.

Leaf-first: paths -> artifacts -> interfaces -> fileset -> runfiles -> input_mapping.
"""
from .artifacts import (
    EMPTY_MARKER,
    Artifact,
    ArtifactKind,
    EmptyMarker,
    FilesetSymlink,
    FileType,
    Input,
    PathInput,
    RelativeSymlinkPolicy,
    RunfilesTree,
    TreeFileArtifact,
    file_artifact,
    fileset_artifact,
    tree_artifact,
    tree_member,
)
from .errors import (
    ConfigError,
    ForbiddenActionInputError,
    ForbiddenInputError,
    ForbiddenRelativeSymlinkError,
    InputConflictError,
    InternalInvariantError,
    InvalidPathError,
    MissingExpansionError,
    SpawnInputError,
)
from .fileset import FilesetManifest, FilesetResolver
from .input_mapping import InputTable, SpawnInputExpander
from .interfaces import (
    ArtifactExpander,
    FilesystemMetadataProvider,
    InMemoryArtifactExpander,
    MetadataProvider,
    SimpleSpawn,
    Spawn,
    StaticMetadataProvider,
)
from .manifest import mapping_to_json, render_input_manifest
from .paths import add_mapping, validate_base_directory, validate_relative_path
from .runfiles import RunfilesMapper

__all__ = [
    # Values
    "EMPTY_MARKER",
    "Artifact",
    "ArtifactKind",
    "EmptyMarker",
    "FilesetSymlink",
    "FileType",
    "Input",
    "PathInput",
    "RelativeSymlinkPolicy",
    "RunfilesTree",
    "TreeFileArtifact",
    "file_artifact",
    "fileset_artifact",
    "tree_artifact",
    "tree_member",
    # Errors
    "ConfigError",
    "ForbiddenActionInputError",
    "ForbiddenInputError",
    "ForbiddenRelativeSymlinkError",
    "InputConflictError",
    "InternalInvariantError",
    "InvalidPathError",
    "MissingExpansionError",
    "SpawnInputError",
    # Engine
    "FilesetManifest",
    "FilesetResolver",
    "InputTable",
    "RunfilesMapper",
    "SpawnInputExpander",
    "add_mapping",
    "validate_base_directory",
    "validate_relative_path",
    # Collaborators
    "ArtifactExpander",
    "FilesystemMetadataProvider",
    "InMemoryArtifactExpander",
    "MetadataProvider",
    "SimpleSpawn",
    "Spawn",
    "StaticMetadataProvider",
    # Rendering
    "mapping_to_json",
    "render_input_manifest",
]
