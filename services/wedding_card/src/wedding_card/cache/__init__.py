"""Local cache for optimized images."""

from .backends import CacheBackend, CacheEntry, KeyValueFileStore, StructuredImageStore
from .coordinator import ImageCache, build_image_cache, composite_key
from .store import PersistentCacheStore

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "KeyValueFileStore",
    "StructuredImageStore",
    "PersistentCacheStore",
    "ImageCache",
    "build_image_cache",
    "composite_key",
]
