"""
Optimization session.

Per invocation:
CHECK_CACHE → READY (hit)
CHECK_CACHE → PENDING → READY | FAILED (miss)

The caller supplies `is_current`, evaluated after every suspension point; once it turns False
the invocation ends with StaleResultError and nothing is displayed or persisted.
"""

from __future__ import annotations

import asyncio
from enum import Enum, auto
from typing import Callable, Optional, Set

from common.logging import get_logger

from .cache import ImageCache
from .client import WeddingCardClient
from .errors import StaleResultError, TransportError, ValidationError
from .media import ImageVariant, SelectedFile, encode_data_url

LOGGER = get_logger(__name__)


class OptimizationPhase(Enum):
    IDLE = auto()
    CHECK_CACHE = auto()
    PENDING = auto()
    READY = auto()
    FAILED = auto()
    DISCARDED = auto()


def _always_current() -> bool:
    return True


class OptimizationSession:
    """Serve an optimized variant from cache or from the optimize endpoint."""

    def __init__(self, client: WeddingCardClient, cache: ImageCache) -> None:
        self.client = client
        self.cache = cache
        self.phase = OptimizationPhase.IDLE
        self._invocations = 0
        self._pending_writes: Set[asyncio.Task] = set()

    async def request_optimized(
        self,
        file: SelectedFile,
        style: int,
        is_current: Optional[Callable[[], bool]] = None,
    ) -> ImageVariant:
        """Return the optimized variant for (file, style).

        Raises:
            StaleResultError: the invocation was superseded while suspended
            TransportError / ValidationError: the optimize endpoint failed; nothing is cached
        """
        is_current = is_current or _always_current
        self._invocations += 1
        invocation = self._invocations

        self._set_phase(invocation, OptimizationPhase.CHECK_CACHE)
        cached = await self.cache.get(file.name, style)
        self._ensure_current(invocation, is_current, file, style)
        if cached:
            LOGGER.debug("Optimized image served from cache", filename=file.name, style=style)
            self._set_phase(invocation, OptimizationPhase.READY)
            return ImageVariant.optimized(cached, style, from_cache=True)

        self._set_phase(invocation, OptimizationPhase.PENDING)
        try:
            optimized = await self.client.optimize(file.name, file.data, file.media_type, style)
        except (TransportError, ValidationError) as exc:
            if not is_current():
                self._set_phase(invocation, OptimizationPhase.DISCARDED)
                raise StaleResultError(exc.message) from exc
            self._set_phase(invocation, OptimizationPhase.FAILED)
            LOGGER.warning("Optimization failed", filename=file.name, style=style, error=exc.message)
            raise
        self._ensure_current(invocation, is_current, file, style)

        data_url = encode_data_url(optimized.data, optimized.media_type)
        self._set_phase(invocation, OptimizationPhase.READY)
        self._persist(file.name, style, data_url)
        return ImageVariant.optimized(data_url, style)

    def _set_phase(self, invocation: int, phase: OptimizationPhase) -> None:
        # only the newest invocation reports its phase
        if invocation == self._invocations:
            self.phase = phase

    def _ensure_current(
        self, invocation: int, is_current: Callable[[], bool], file: SelectedFile, style: int
    ) -> None:
        if is_current():
            return
        self._set_phase(invocation, OptimizationPhase.DISCARDED)
        LOGGER.debug("Discarding superseded optimization", filename=file.name, style=style)
        raise StaleResultError(f"Optimization of {file.name} (style {style}) was superseded")

    def _persist(self, file_name: str, style: int, data_url: str) -> None:
        task = asyncio.create_task(self.cache.set(file_name, style, data_url))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def drain(self) -> None:
        """Wait for background cache writes to finish."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))


__all__ = ["OptimizationSession", "OptimizationPhase"]
