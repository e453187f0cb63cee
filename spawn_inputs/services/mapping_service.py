"""
Async facade over SpawnInputExpander.

Mapping calls are synchronous and may block inside the collaborators
(metadata lookups, tree expansion). This service runs each call on a worker
thread and caps how many run at once, so an event loop can map inputs for
many in-flight actions without stalling.

No retries happen here: every engine error propagates unchanged to the
awaiting caller. There is no cancellation of a call once it has started on
a worker thread.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import PurePosixPath
from typing import Optional

from ..config import SpawnInputConfig
from ..core.artifacts import Input
from ..core.input_mapping import SpawnInputExpander
from ..core.interfaces import ArtifactExpander, MetadataProvider, Spawn

logger = logging.getLogger(__name__)


class InputMappingService:
    """
    Runs spawn input mapping calls off the event loop.

    Usage:
        service = InputMappingService(SpawnInputExpander(exec_root), max_concurrent=4)
        mapping = await service.map_inputs(spawn, expander, PurePosixPath(""), metadata)
    """

    def __init__(
        self,
        expander: SpawnInputExpander,
        max_concurrent: Optional[int] = None,
    ) -> None:
        """
        Initialize the service.

        Args:
            expander: Shared engine instance (stateless per call)
            max_concurrent: Cap on in-flight calls; defaults to the CPU count
        """
        self._expander = expander
        self._max_concurrent = max_concurrent or os.cpu_count() or 1
        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        self._active_count = 0

        logger.info(f"InputMappingService initialized: max_concurrent={self._max_concurrent}")

    @classmethod
    def from_config(cls, config: SpawnInputConfig) -> "InputMappingService":
        return cls(
            SpawnInputExpander.from_config(config),
            max_concurrent=config.max_concurrent_mappings,
        )

    @property
    def expander(self) -> SpawnInputExpander:
        return self._expander

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active_count(self) -> int:
        return self._active_count

    async def map_inputs(
        self,
        spawn: Spawn,
        artifact_expander: ArtifactExpander,
        base_directory: Optional[PurePosixPath],
        metadata: MetadataProvider,
    ) -> dict[PurePosixPath, Input]:
        """Map one spawn's inputs on a worker thread."""
        async with self._semaphore:
            self._active_count += 1
            try:
                return await asyncio.to_thread(
                    self._expander.get_input_mapping,
                    spawn,
                    artifact_expander,
                    base_directory,
                    metadata,
                )
            finally:
                self._active_count -= 1

    async def map_many(
        self,
        requests: list[tuple[Spawn, ArtifactExpander, Optional[PurePosixPath], MetadataProvider]],
    ) -> list[dict[PurePosixPath, Input]]:
        """
        Map several spawns concurrently, bounded by max_concurrent.

        Results are returned in request order. The first failure propagates
        after all calls have finished.
        """
        results = await asyncio.gather(
            *(self.map_inputs(*request) for request in requests),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return results
