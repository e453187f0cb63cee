"""
Declarative spawn descriptions.

Builds a Spawn together with the collaborators needed to map it from a
YAML document (or an equivalent dict):

    artifacts:
      out/lib: {kind: tree, members: [a.so, sub/b.so]}
      out/fs:
        kind: fileset
        links:
          - {name: x, target: /abs/x}
          - {name: e}
      bin/tool: {kind: file, type: file}
    inputs: [bin/tool, out/lib]
    runfiles:
      tool.runfiles:
        data.txt: bin/tool
        empty.txt: null
    filesets: [out/fs]

Paths referenced but not declared under `artifacts` are plain files.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .artifacts import Artifact, ArtifactKind, FileType, FilesetSymlink
from .errors import ConfigError
from .interfaces import InMemoryArtifactExpander, SimpleSpawn, StaticMetadataProvider

logger = logging.getLogger(__name__)


class FilesetLinkSpec(BaseModel):
    """One fileset symlink declaration."""
    name: str
    target: Optional[str] = None
    relative_to_exec_root: bool = False


class ArtifactSpec(BaseModel):
    """Declaration of one artifact."""
    kind: ArtifactKind = ArtifactKind.FILE
    type: Optional[FileType] = Field(default=None, description="Metadata reported in strict mode")
    members: list[str] = Field(default_factory=list, description="Tree members")
    links: list[FilesetLinkSpec] = Field(default_factory=list, description="Fileset symlinks")

    @field_validator("kind", "type", mode="before")
    @classmethod
    def normalize_enum(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class SpawnDescriptionSpec(BaseModel):
    """Top-level spawn description document."""
    description: str = ""
    artifacts: dict[str, ArtifactSpec] = Field(default_factory=dict)
    inputs: list[str] = Field(default_factory=list)
    runfiles: dict[str, dict[str, Optional[str]]] = Field(default_factory=dict)
    filesets: list[str] = Field(default_factory=list)


@dataclass
class SpawnDescription:
    """A spawn plus the collaborators that answer for its artifacts."""
    spawn: SimpleSpawn
    expander: InMemoryArtifactExpander
    metadata: StaticMetadataProvider


def load_spawn_description(data: dict[str, Any]) -> SpawnDescription:
    """
    Build a SpawnDescription from a parsed document.

    Raises:
        ConfigError: If the document does not match the expected shape
    """
    try:
        spec = SpawnDescriptionSpec(**(data or {}))
    except (TypeError, ValidationError) as exc:
        raise ConfigError(f"Invalid spawn description: {exc}") from exc

    expander = InMemoryArtifactExpander()
    metadata = StaticMetadataProvider(default=FileType.FILE)
    artifacts: dict[str, Artifact] = {}

    for path, artifact_spec in spec.artifacts.items():
        artifact = Artifact(PurePosixPath(path), artifact_spec.kind)
        artifacts[path] = artifact
        if artifact_spec.type is not None:
            metadata.set_type(path, artifact_spec.type)
        if artifact.kind is ArtifactKind.TREE:
            expander.register_tree(artifact, artifact_spec.members)
        elif artifact.kind is ArtifactKind.FILESET:
            expander.register_fileset(
                artifact,
                [
                    FilesetSymlink(
                        name=PurePosixPath(link.name),
                        target=link.target,
                        relative_to_exec_root=link.relative_to_exec_root,
                    )
                    for link in artifact_spec.links
                ],
            )

    def lookup(path: str) -> Artifact:
        artifact = artifacts.get(path)
        if artifact is None:
            artifact = Artifact(PurePosixPath(path), ArtifactKind.FILE)
            artifacts[path] = artifact
        return artifact

    runfiles: dict[PurePosixPath, dict[PurePosixPath, Optional[Artifact]]] = {}
    for root, entries in spec.runfiles.items():
        runfiles[PurePosixPath(root)] = {
            PurePosixPath(relative): (lookup(source) if source is not None else None)
            for relative, source in entries.items()
        }

    filesets: dict[Artifact, list[FilesetSymlink]] = {}
    for path in spec.filesets:
        fileset = lookup(path)
        if fileset.kind is not ArtifactKind.FILESET:
            raise ConfigError(f"{path} is listed under filesets but is not declared as a fileset")
        filesets[fileset] = list(expander.fileset_symlinks(fileset))

    spawn = SimpleSpawn(
        inputs=[lookup(path) for path in spec.inputs],
        runfiles=runfiles,
        filesets=filesets,
        description=spec.description,
    )
    logger.debug(
        f"Loaded spawn description: {len(spawn.inputs)} inputs, "
        f"{len(runfiles)} runfiles roots, {len(filesets)} filesets"
    )
    return SpawnDescription(spawn=spawn, expander=expander, metadata=metadata)


def load_spawn_description_file(path: Path | str) -> SpawnDescription:
    """Read a YAML spawn description from disk."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Spawn description not found at {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return load_spawn_description(data)
