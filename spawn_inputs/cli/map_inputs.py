#!/usr/bin/env python3
"""CLI tool for printing the input mapping of a spawn description.

Reads a YAML spawn description (see spawn_inputs.core.spawn_description),
maps its inputs with the configured engine and prints the sorted mapping
either as a MANIFEST-style listing or as JSON.

Exit codes:
    0  success
    1  invalid action inputs (bad path, directory input, forbidden symlink)
    2  internal invariant violation (e.g. missing tree expansion)
    3  configuration or description error
"""
import argparse
import json
import logging
import sys
from pathlib import PurePosixPath
from typing import Optional, Sequence

from ..config import load_spawn_input_config
from ..core.artifacts import RelativeSymlinkPolicy
from ..core.errors import ConfigError, InternalInvariantError, SpawnInputError
from ..core.input_mapping import SpawnInputExpander
from ..core.manifest import mapping_to_json, render_input_manifest
from ..core.spawn_description import load_spawn_description_file
from ..logging_config import configure_logging

logger = logging.getLogger(__name__)

EXIT_INPUT_ERROR = 1
EXIT_INTERNAL_ERROR = 2
EXIT_CONFIG_ERROR = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print the sandbox input mapping of a spawn description"
    )
    parser.add_argument("spawn", help="Path to the YAML spawn description")
    parser.add_argument("--config", help="Engine config YAML (default: $SPAWN_INPUTS_CONFIG)")
    parser.add_argument("--base-dir", default="", help="Prefix for every destination path")
    parser.add_argument("--exec-root", help="Override the configured execution root")
    parser.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reject runfiles that are directories (--no-strict overrides the config)",
    )
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in RelativeSymlinkPolicy],
        help="Relative fileset symlink policy",
    )
    parser.add_argument(
        "--format",
        choices=["manifest", "json"],
        default="manifest",
        help="Output format",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    return parser


def run(args: argparse.Namespace) -> str:
    """Map the described spawn and return the rendered output."""
    config = load_spawn_input_config(args.config)
    overrides = {}
    if args.exec_root:
        overrides["exec_root"] = args.exec_root
    if args.strict is not None:
        overrides["strict"] = args.strict
    if args.policy:
        overrides["relative_symlink_policy"] = args.policy
    if overrides:
        config = config.model_validate({**config.model_dump(), **overrides})

    description = load_spawn_description_file(args.spawn)
    expander = SpawnInputExpander.from_config(config)
    mapping = expander.get_input_mapping(
        description.spawn,
        description.expander,
        PurePosixPath(args.base_dir),
        description.metadata,
    )

    if args.format == "json":
        return json.dumps(mapping_to_json(mapping), indent=2)
    return render_input_manifest(mapping)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, json_output=args.json_logs)

    try:
        output = run(args)
    except ConfigError as exc:
        logger.error(f"Configuration error: {exc}")
        return EXIT_CONFIG_ERROR
    except InternalInvariantError as exc:
        logger.error(f"Internal error (please report): {exc}")
        return EXIT_INTERNAL_ERROR
    except SpawnInputError as exc:
        logger.error(f"Action inputs invalid: {exc}")
        return EXIT_INPUT_ERROR

    sys.stdout.write(output)
    if output and not output.endswith("\n"):
        sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
