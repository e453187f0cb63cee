"""
Configuration loader for spawn input mapping.

Loads engine settings from a YAML file. The file may either hold the
settings at the top level or under a `spawn_inputs:` section:

    spawn_inputs:
      exec_root: /build/execroot
      strict: true
      relative_symlink_policy: resolve
      conflict_mode: warn
      max_concurrent_mappings: 8

A missing file yields defaults. A file that exists but cannot be parsed or
validated raises ConfigError.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .core.artifacts import RelativeSymlinkPolicy
from .core.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SPAWN_INPUTS_CONFIG"
CONFIG_SECTION = "spawn_inputs"


class SpawnInputConfig(BaseModel):
    """Construction-time settings of the input mapping engine."""

    exec_root: Path = Field(
        default=Path("."),
        validate_default=True,
        description="Execution root that fileset targets are resolved against (made absolute)",
    )
    strict: bool = Field(
        default=False,
        description="Reject runfiles that are directories",
    )
    relative_symlink_policy: RelativeSymlinkPolicy = Field(
        default=RelativeSymlinkPolicy.ERROR,
        description="Handling of fileset symlinks escaping their fileset",
    )
    conflict_mode: Literal["overwrite", "warn", "error"] = Field(
        default="overwrite",
        description="Reaction to different inputs mapped to one destination by different phases",
    )
    max_concurrent_mappings: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on in-flight mapping calls in InputMappingService (default: CPU count)",
    )

    @field_validator("exec_root", mode="before")
    @classmethod
    def expand_exec_root(cls, value: Any) -> Any:
        if isinstance(value, (str, os.PathLike)):
            return Path(os.path.expandvars(os.fspath(value))).expanduser().absolute()
        return value

    @field_validator("relative_symlink_policy", mode="before")
    @classmethod
    def normalize_policy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("conflict_mode", mode="before")
    @classmethod
    def normalize_conflict_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


def load_spawn_input_config(config_path: Optional[Path | str] = None) -> SpawnInputConfig:
    """
    Load engine configuration from YAML.

    Args:
        config_path: Path to config file. Falls back to $SPAWN_INPUTS_CONFIG.

    Returns:
        SpawnInputConfig (defaults if no file is configured or it does not exist)

    Raises:
        ConfigError: If the file cannot be parsed or fails validation
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR)
    if not config_path:
        return SpawnInputConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        logger.warning(f"Spawn input config not found at {config_path}. Using defaults.")
        return SpawnInputConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {config_path}: {exc}") from exc

    return parse_spawn_input_config(raw, source=str(config_path))


def parse_spawn_input_config(raw: Any, source: str = "<config>") -> SpawnInputConfig:
    """Validate an already-parsed config document."""
    if not isinstance(raw, dict):
        raise ConfigError(f"{source} must contain a mapping, got {type(raw).__name__}")

    section = raw.get(CONFIG_SECTION, raw)
    if not isinstance(section, dict):
        raise ConfigError(f"'{CONFIG_SECTION}' in {source} must be a mapping")

    try:
        config = SpawnInputConfig(**section)
    except ValidationError as exc:
        raise ConfigError(f"Invalid spawn input config in {source}: {exc}") from exc

    logger.info(
        f"Loaded spawn input config from {source}: strict={config.strict}, "
        f"relative_symlink_policy={config.relative_symlink_policy.value}, "
        f"conflict_mode={config.conflict_mode}"
    )
    return config
