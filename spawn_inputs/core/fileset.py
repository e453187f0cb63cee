"""
Fileset resolution.

A fileset is a directory tree assembled from symlink declarations rather than
literal files. This module flattens one fileset's declarations into a
manifest of `location -> target` (None for an intentionally empty entry) and
writes it into an input mapping.

Relative targets are interpreted from the link's own directory:

    out/fs/docs/readme -> ../data/readme.txt   resolves to out/fs/data/readme.txt

Targets that stay inside the fileset are followed through the fileset's own
entries. Targets that leave it are subject to the RelativeSymlinkPolicy,
since a symlink target is an author-controlled string that could point
anywhere on the host.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import MutableMapping, Optional, Sequence

from .artifacts import EMPTY_MARKER, FilesetSymlink, Input, PathInput, RelativeSymlinkPolicy
from .errors import ForbiddenRelativeSymlinkError, InvalidPathError
from .paths import add_mapping, escapes_root, is_within, normalize_relative, validate_relative_path

logger = logging.getLogger(__name__)

MAX_SYMLINK_TRAVERSALS = 256


@dataclass
class FilesetManifest:
    """Flattened fileset: location -> target, None meaning an empty entry."""

    mount_point: PurePosixPath
    entries: dict[PurePosixPath, Optional[str]] = field(default_factory=dict)
    dropped: list[PurePosixPath] = field(default_factory=list)


class FilesetResolver:
    """
    Turns fileset symlink declarations into input mapping entries.

    Thread Safety:
        Immutable after construction; every call works on its own manifest.
    """

    def __init__(
        self,
        exec_root: PurePosixPath,
        policy: RelativeSymlinkPolicy = RelativeSymlinkPolicy.ERROR,
    ):
        self._exec_root = PurePosixPath(exec_root)
        if not self._exec_root.is_absolute():
            raise ValueError(f"Execution root must be absolute: {self._exec_root}")
        self._policy = policy

    @property
    def policy(self) -> RelativeSymlinkPolicy:
        return self._policy

    def construct_manifest(
        self,
        symlinks: Sequence[FilesetSymlink],
        mount_point: PurePosixPath,
    ) -> FilesetManifest:
        """
        Flatten symlink declarations mounted at mount_point.

        Within one fileset the first direct declaration of a location wins;
        a resolved in-fileset relative link replaces it.

        Raises:
            ForbiddenRelativeSymlinkError: An escaping relative symlink under
                the ERROR policy, or one climbing above the execution root
            InvalidPathError: A link name that is absolute or leaves the fileset
        """
        mount_point = normalize_relative(validate_relative_path(mount_point))
        manifest = FilesetManifest(mount_point=mount_point)
        relative_links: dict[PurePosixPath, str] = {}

        for link in symlinks:
            location = self._link_location(link, mount_point)

            if link.is_empty:
                manifest.entries.setdefault(location, None)
            elif not link.is_relative:
                manifest.entries.setdefault(location, link.target)
            else:
                unresolved = location.parent / link.target
                if not escapes_root(unresolved) and is_within(unresolved, mount_point):
                    relative_links[location] = link.target
                else:
                    self._add_escaping_link(manifest, location, link.target, unresolved)

        self._resolve_relative_links(manifest, relative_links)
        return manifest

    def add_to_inputs(
        self,
        input_map: MutableMapping[PurePosixPath, Input],
        symlinks: Sequence[FilesetSymlink],
        mount_point: PurePosixPath,
        base_directory: Optional[PurePosixPath] = None,
    ) -> int:
        """
        Write the fileset's entries into input_map.

        Empty entries become EMPTY_MARKER; everything else becomes a PathInput
        resolved against the execution root.

        Returns:
            Number of entries written
        """
        manifest = self.construct_manifest(symlinks, mount_point)
        for location, target in manifest.entries.items():
            if target is None:
                value: Input = EMPTY_MARKER
            else:
                value = PathInput(self._exec_root / target)
            add_mapping(input_map, location, value, base_directory)
        return len(manifest.entries)

    def _link_location(self, link: FilesetSymlink, mount_point: PurePosixPath) -> PurePosixPath:
        name = validate_relative_path(link.name)
        location = mount_point / name
        if escapes_root(location) or not is_within(location, mount_point):
            raise InvalidPathError(
                f"Fileset entry {name} leaves its fileset {mount_point}",
                path=str(name),
                reason="OUTSIDE_FILESET",
            )
        return normalize_relative(location)

    def _add_escaping_link(
        self,
        manifest: FilesetManifest,
        location: PurePosixPath,
        target: str,
        unresolved: PurePosixPath,
    ) -> None:
        if self._policy is RelativeSymlinkPolicy.ERROR:
            raise ForbiddenRelativeSymlinkError(target, str(location))

        if self._policy is RelativeSymlinkPolicy.IGNORE:
            logger.warning(
                f"Ignoring fileset symlink {location} -> {target}: "
                f"target is outside {manifest.mount_point}"
            )
            manifest.dropped.append(location)
            return

        if self._policy is RelativeSymlinkPolicy.RESOLVE:
            if escapes_root(unresolved):
                raise ForbiddenRelativeSymlinkError(target, str(location))
            resolved = self._exec_root / normalize_relative(unresolved)
            logger.debug(f"Resolved fileset symlink {location} -> {resolved}")
            manifest.entries.setdefault(location, str(resolved))
            return

        raise ValueError(f"Unknown relative symlink policy: {self._policy!r}")

    def _resolve_relative_links(
        self,
        manifest: FilesetManifest,
        relative_links: dict[PurePosixPath, str],
    ) -> None:
        for location, target in relative_links.items():
            current = location
            actual: Optional[str] = target
            seen: list[PurePosixPath] = []
            traversals = 0

            while actual is not None and traversals < MAX_SYMLINK_TRAVERSALS:
                current = normalize_relative(current.parent / actual)
                traversals += 1
                if current in seen:
                    break
                seen.append(current)
                actual = relative_links.get(current)

            if actual is not None and traversals >= MAX_SYMLINK_TRAVERSALS:
                logger.warning(
                    f"Symlink {location} is part of a chain of length at least "
                    f"{traversals}, exceeding the limit of {MAX_SYMLINK_TRAVERSALS}"
                )
                manifest.dropped.append(location)
            elif actual is not None:
                logger.warning(
                    f"Symlink {location} forms a symlink cycle: "
                    f"{', '.join(str(p) for p in seen)}"
                )
                manifest.dropped.append(location)
            elif current not in manifest.entries:
                logger.warning(
                    f"Symlink {location} (transitively) points to {current}, "
                    f"which is not an entry of {manifest.mount_point}"
                )
                manifest.dropped.append(location)
            else:
                manifest.entries[location] = manifest.entries[current]
