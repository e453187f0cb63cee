"""
Rendering of input mappings for sandbox listings and diagnostics.

The text form mirrors a runfiles MANIFEST: one `<destination> <source>` line
per entry in path order, with an empty source for the empty marker.
"""
from __future__ import annotations

from pathlib import PurePosixPath
from typing import Any, Mapping

from .artifacts import EMPTY_MARKER, Input, describe_input


def _source(value: Input) -> str:
    if value is EMPTY_MARKER:
        return ""
    return str(value.exec_path)


def render_input_manifest(mapping: Mapping[PurePosixPath, Input]) -> str:
    lines = []
    for path in sorted(mapping):
        lines.append(f"{path} {_source(mapping[path])}")
    return "\n".join(lines) + ("\n" if lines else "")


def mapping_to_json(mapping: Mapping[PurePosixPath, Input]) -> list[dict[str, Any]]:
    """JSON-serialisable form: a list of {path, kind, source} in path order."""
    return [
        {
            "path": str(path),
            "kind": describe_input(mapping[path]),
            "source": _source(mapping[path]) or None,
        }
        for path in sorted(mapping)
    ]
