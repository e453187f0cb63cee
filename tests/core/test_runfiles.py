"""
Unit tests for RunfilesMapper.

Tests cover:
- Plain file and empty (None) entries
- Tree artifact expansion completeness
- Fileset entries mounted at the runfiles location
- Strict mode directory rejection
- Missing expansions surfacing as internal errors
- Invalid roots and relative paths
"""
import logging
from pathlib import PurePosixPath

import pytest

from spawn_inputs.core import (
    EMPTY_MARKER,
    FilesetResolver,
    FilesetSymlink,
    FileType,
    ForbiddenInputError,
    InMemoryArtifactExpander,
    InternalInvariantError,
    InvalidPathError,
    MissingExpansionError,
    PathInput,
    RunfilesMapper,
    StaticMetadataProvider,
    file_artifact,
    fileset_artifact,
    tree_artifact,
    tree_member,
)

P = PurePosixPath


@pytest.fixture
def mapper(exec_root: PurePosixPath) -> RunfilesMapper:
    return RunfilesMapper(FilesetResolver(exec_root))


@pytest.fixture
def strict_mapper(exec_root: PurePosixPath) -> RunfilesMapper:
    return RunfilesMapper(FilesetResolver(exec_root), strict=True)


class TestPlainEntries:
    """Test FILE and empty runfiles entries."""

    def test_example_scenario(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Root 'bin' with one file and one empty entry."""
        data = file_artifact("pkg/data.txt")
        runfiles = {P("bin"): {P("data.txt"): data, P("empty.txt"): None}}

        table = mapper.map_runfiles(runfiles, metadata, artifact_expander)

        assert table == {P("bin/data.txt"): data, P("bin/empty.txt"): EMPTY_MARKER}

    def test_base_directory_prefix(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Every destination is prefixed with the base directory."""
        data = file_artifact("pkg/data.txt")
        runfiles = {P("tool.runfiles/main"): {P("pkg/data.txt"): data}}

        table = mapper.map_runfiles(runfiles, metadata, artifact_expander, P("sandbox"))

        assert list(table) == [P("sandbox/tool.runfiles/main/pkg/data.txt")]

    def test_string_keys_accepted(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        table = mapper.map_runfiles({"bin": {"e": None}}, metadata, artifact_expander)
        assert table == {P("bin/e"): EMPTY_MARKER}

    def test_add_runfiles_returns_entry_count(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """The return value counts entries written."""
        table = {}
        runfiles = {P("a"): {P("x"): None, P("y"): file_artifact("y")}, P("b"): {P("z"): None}}
        assert mapper.add_runfiles_to_inputs(table, runfiles, metadata, artifact_expander) == 3
        assert len(table) == 3

    def test_absolute_root_rejected(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """An absolute runfiles root raises before anything is written."""
        with pytest.raises(InvalidPathError):
            mapper.map_runfiles({P("/abs"): {P("x"): None}}, metadata, artifact_expander)

    def test_absolute_relative_path_rejected(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        with pytest.raises(InvalidPathError):
            mapper.map_runfiles({P("bin"): {P("/x"): None}}, metadata, artifact_expander)


class TestTreeEntries:
    """Test tree artifact expansion inside runfiles."""

    def test_tree_members_suffixed(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Tree members land beneath the entry's location."""
        tree = tree_artifact("out/gen")
        artifact_expander.register_tree(tree, ["a.txt", "sub/b.txt", "sub/c.txt"])
        runfiles = {P("bin"): {P("gen"): tree}}

        table = mapper.map_runfiles(runfiles, metadata, artifact_expander)

        assert table == {
            P("bin/gen/a.txt"): tree_member(tree, "a.txt"),
            P("bin/gen/sub/b.txt"): tree_member(tree, "sub/b.txt"),
            P("bin/gen/sub/c.txt"): tree_member(tree, "sub/c.txt"),
        }

    def test_empty_tree_yields_nothing(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        tree = tree_artifact("out/empty")
        artifact_expander.register_tree(tree, [])
        assert mapper.map_runfiles({P("bin"): {P("t"): tree}}, metadata, artifact_expander) == {}

    def test_unregistered_tree_is_internal_error(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A missing tree expansion is logged and re-raised."""
        tree = tree_artifact("out/unknown")
        with caplog.at_level(logging.ERROR, logger="spawn_inputs.core.runfiles"):
            with pytest.raises(MissingExpansionError) as exc_info:
                mapper.map_runfiles({P("bin"): {P("t"): tree}}, metadata, artifact_expander)
        assert isinstance(exc_info.value, InternalInvariantError)
        assert exc_info.value.kind == "tree"
        assert "Internal error" in caplog.text


class TestFilesetEntries:
    """Test filesets reached through runfiles."""

    def test_fileset_mounted_at_runfiles_location(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Fileset links are mounted at the runfiles entry."""
        fileset = fileset_artifact("out/fs")
        artifact_expander.register_fileset(
            fileset,
            [FilesetSymlink(P("x"), "/data/x"), FilesetSymlink(P("e"))],
        )
        table = mapper.map_runfiles({P("bin"): {P("fs"): fileset}}, metadata, artifact_expander)

        assert table == {
            P("bin/fs/e"): EMPTY_MARKER,
            P("bin/fs/x"): PathInput(P("/data/x")),
        }

    def test_unregistered_fileset_is_internal_error(
        self,
        mapper: RunfilesMapper,
        metadata: StaticMetadataProvider,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        fileset = fileset_artifact("out/fs")
        with pytest.raises(MissingExpansionError) as exc_info:
            mapper.map_runfiles({P("bin"): {P("fs"): fileset}}, metadata, artifact_expander)
        assert exc_info.value.kind == "fileset"


class TestStrictMode:
    """Test directory rejection in strict mode."""

    def test_directory_rejected_when_strict(
        self,
        strict_mapper: RunfilesMapper,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Strict mode rejects a directory runfile."""
        metadata = StaticMetadataProvider({"pkg/dir": FileType.DIRECTORY}, default=FileType.FILE)
        runfiles = {P("bin"): {P("dir"): file_artifact("pkg/dir")}}

        with pytest.raises(ForbiddenInputError, match="Not a file: pkg/dir") as exc_info:
            strict_mapper.map_runfiles(runfiles, metadata, artifact_expander)
        assert exc_info.value.path == "pkg/dir"

    def test_directory_allowed_when_not_strict(
        self,
        mapper: RunfilesMapper,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        metadata = StaticMetadataProvider({"pkg/dir": FileType.DIRECTORY})
        directory = file_artifact("pkg/dir")

        table = mapper.map_runfiles({P("bin"): {P("dir"): directory}}, metadata, artifact_expander)

        assert table == {P("bin/dir"): directory}

    def test_absent_metadata_accepted(
        self,
        strict_mapper: RunfilesMapper,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Nothing to check when the provider knows nothing about the input."""
        metadata = StaticMetadataProvider(default=FileType.ABSENT)
        data = file_artifact("pkg/data")
        table = strict_mapper.map_runfiles({P("bin"): {P("d"): data}}, metadata, artifact_expander)
        assert table == {P("bin/d"): data}

    def test_metadata_not_consulted_when_not_strict(
        self,
        mapper: RunfilesMapper,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        class ExplodingMetadata:
            def type_of(self, value):
                raise AssertionError("metadata must not be queried")

        data = file_artifact("pkg/data")
        table = mapper.map_runfiles({P("bin"): {P("d"): data}}, ExplodingMetadata(), artifact_expander)
        assert table == {P("bin/d"): data}

    def test_metadata_os_error_propagates(
        self,
        strict_mapper: RunfilesMapper,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Provider I/O errors are not wrapped."""
        class FailingMetadata:
            def type_of(self, value):
                raise PermissionError("denied")

        with pytest.raises(PermissionError):
            strict_mapper.map_runfiles(
                {P("bin"): {P("d"): file_artifact("pkg/d")}},
                FailingMetadata(),
                artifact_expander,
            )

    def test_tree_members_not_checked_in_strict_mode(
        self,
        strict_mapper: RunfilesMapper,
        artifact_expander: InMemoryArtifactExpander,
    ) -> None:
        """Strict mode only checks plain file entries."""
        tree = tree_artifact("out/gen")
        artifact_expander.register_tree(tree, ["a"])
        metadata = StaticMetadataProvider(default=FileType.DIRECTORY)

        table = strict_mapper.map_runfiles({P("bin"): {P("g"): tree}}, metadata, artifact_expander)

        assert list(table) == [P("bin/g/a")]
