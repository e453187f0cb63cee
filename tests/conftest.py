"""
Pytest configuration and fixtures for spawn input mapping tests.

Provides fixtures for:
- A fixed execution root
- In-memory artifact expander and metadata provider
- Engine instances in strict and non-strict mode
"""
import sys
from pathlib import Path, PurePosixPath

import pytest

# Add project root to path before importing project modules
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from spawn_inputs.core import (  # noqa: E402
    FileType,
    InMemoryArtifactExpander,
    RelativeSymlinkPolicy,
    SpawnInputExpander,
    StaticMetadataProvider,
)

EXEC_ROOT = PurePosixPath("/execroot/main")
ROOT = PurePosixPath("")


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests that touch the real filesystem"
    )


@pytest.fixture
def exec_root() -> PurePosixPath:
    return EXEC_ROOT


@pytest.fixture
def artifact_expander() -> InMemoryArtifactExpander:
    """Empty expander; tests register the trees and filesets they need."""
    return InMemoryArtifactExpander()


@pytest.fixture
def metadata() -> StaticMetadataProvider:
    """Metadata provider reporting every path as a regular file by default."""
    return StaticMetadataProvider(default=FileType.FILE)


@pytest.fixture
def engine() -> SpawnInputExpander:
    return SpawnInputExpander(EXEC_ROOT)


@pytest.fixture
def strict_engine() -> SpawnInputExpander:
    return SpawnInputExpander(EXEC_ROOT, strict=True)


@pytest.fixture
def engine_for_policy():
    """Factory for engines with a given relative symlink policy."""
    def _make(policy: RelativeSymlinkPolicy, **kwargs) -> SpawnInputExpander:
        return SpawnInputExpander(EXEC_ROOT, relative_symlink_policy=policy, **kwargs)
    return _make
