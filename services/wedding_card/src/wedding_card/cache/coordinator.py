"""Cache coordinator: composite keys over the persistent store."""

from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional

from common.config import Settings, settings as default_settings

from .backends import CacheEntry, KeyValueFileStore, StructuredImageStore
from .store import PersistentCacheStore

FALLBACK_FILE_NAME = "local_storage.json"


def composite_key(file_name: str, style: int) -> str:
    """Durable address of an optimized image; the format must never change."""
    return f"{file_name}_style_{int(style)}"


class ImageCache:
    """get/set optimized data URLs by (file name, style). Never raises."""

    def __init__(self, store: PersistentCacheStore) -> None:
        self.store = store

    async def get(self, file_name: str, style: int) -> Optional[str]:
        return await self.store.get(composite_key(file_name, style))

    async def set(self, file_name: str, style: int, data_url: str) -> None:
        entry = CacheEntry(
            key=composite_key(file_name, style),
            data=data_url,
            file_name=file_name,
            style=int(style),
            timestamp=int(time.time() * 1000),
        )
        await self.store.put(entry)

    async def dump(self) -> List[CacheEntry]:
        return await self.store.dump()

    async def close(self) -> None:
        await self.store.close()


def build_image_cache(
    cache_dir: Optional[Path] = None,
    database_url: Optional[str] = None,
    config: Optional[Settings] = None,
) -> ImageCache:
    """Wire both backends from settings; explicit arguments win."""

    config = config or default_settings
    cache_dir = Path(cache_dir) if cache_dir is not None else config.cache_path
    cache_dir.mkdir(parents=True, exist_ok=True)
    if database_url is None:
        database_url = config.resolved_cache_db_url(cache_dir)
    elif database_url == "disabled":
        database_url = None

    fallback = KeyValueFileStore(
        cache_dir / FALLBACK_FILE_NAME,
        prefix=config.cache_key_prefix,
        quota_bytes=config.local_storage_quota_bytes,
    )
    return ImageCache(PersistentCacheStore(StructuredImageStore(database_url), fallback))


__all__ = ["ImageCache", "composite_key", "build_image_cache"]
