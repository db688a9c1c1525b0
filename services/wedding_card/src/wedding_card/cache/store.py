"""Persistent cache store: structured backend first, flat fallback second."""

from __future__ import annotations

from typing import List, Optional

from common.logging import get_logger

from ..errors import QuotaExceededError
from .backends import CacheBackend, CacheEntry

LOGGER = get_logger(__name__)


class PersistentCacheStore:
    """Unifies the two backends behind one get/put interface.

    The preferred backend is re-opened on every top-level call, so a transient failure never
    disables it for good. Every backend failure stops here, whatever its type: reads
    degrade to a miss, writes are dropped after a warning.
    """

    def __init__(self, primary: Optional[CacheBackend], fallback: CacheBackend) -> None:
        self.primary = primary
        self.fallback = fallback

    async def _available_primary(self) -> Optional[CacheBackend]:
        if self.primary is None:
            return None
        try:
            opened = await self.primary.open()
        except Exception as exc:
            LOGGER.warning("Structured image store failed to open", backend=self.primary.name, error=str(exc))
            return None
        return self.primary if opened else None

    async def get(self, key: str) -> Optional[str]:
        primary = await self._available_primary()
        if primary is not None:
            try:
                value = await primary.read(key)
            except Exception as exc:
                LOGGER.warning("Cache read failed, trying fallback", key=key, error=str(exc))
            else:
                if value is not None:
                    return value

        try:
            return await self.fallback.read(key)
        except Exception as exc:
            LOGGER.warning("Fallback cache read failed", key=key, error=str(exc))
            return None

    async def put(self, entry: CacheEntry) -> bool:
        """Persist `entry`; returns False when no backend accepted it."""
        primary = await self._available_primary()
        if primary is not None:
            try:
                await primary.write(entry)
                return True
            except Exception as exc:
                LOGGER.warning("Cache write failed, trying fallback", key=entry.key, error=str(exc))

        try:
            await self.fallback.write(entry)
            return True
        except QuotaExceededError as exc:
            # TODO: surface a low-priority notice to the guest once the UI has a slot for it
            LOGGER.warning("Storage quota exceeded", key=entry.key, error=exc.message)
        except Exception as exc:
            LOGGER.warning("Fallback cache write failed", key=entry.key, error=str(exc))
        return False

    async def dump(self) -> List[CacheEntry]:
        """Entries from both backends, structured first."""
        entries: List[CacheEntry] = []
        for backend in (await self._available_primary(), self.fallback):
            if backend is None:
                continue
            try:
                entries.extend(await backend.entries())
            except Exception as exc:
                LOGGER.warning("Cache dump failed", backend=backend.name, error=str(exc))
        return entries

    async def close(self) -> None:
        for backend in (self.primary, self.fallback):
            if backend is None:
                continue
            try:
                await backend.close()
            except Exception as exc:
                LOGGER.warning("Cache close failed", backend=backend.name, error=str(exc))


__all__ = ["PersistentCacheStore"]
