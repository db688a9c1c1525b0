"""Cache backends: an async structured store and a synchronous key-value fallback."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from common.logging import get_logger

from ..errors import CacheBackendError, QuotaExceededError
from .models import Base, ImageRecord

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class CacheEntry:
    key: str
    data: str
    file_name: Optional[str] = None
    style: Optional[int] = None
    timestamp: Optional[int] = None


class CacheBackend(ABC):
    """Durable key -> data URL storage."""

    name = "backend"

    async def open(self) -> bool:
        """Return True when the backend can serve requests right now."""
        return True

    @abstractmethod
    async def read(self, key: str) -> Optional[str]:
        """Return the stored data URL, or None on a miss. Raises CacheBackendError."""

    @abstractmethod
    async def write(self, entry: CacheEntry) -> None:
        """Store or overwrite the entry. Raises CacheBackendError."""

    @abstractmethod
    async def entries(self) -> List[CacheEntry]:
        """Every stored entry, for inspection."""

    async def close(self) -> None:
        return None


class StructuredImageStore(CacheBackend):
    """`images` record set in SQLite (or any async SQLAlchemy URL), exact-key lookups only."""

    name = "structured"

    def __init__(self, database_url: Optional[str]) -> None:
        self.database_url = database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[sessionmaker] = None

    async def open(self) -> bool:
        """Open the database and create the schema on first use.

        A failed open is not remembered; the next call tries again.
        """
        if self._engine is not None:
            return True
        if not self.database_url:
            return False

        engine: Optional[AsyncEngine] = None
        try:
            # one connection per session, nothing stays open between calls
            engine = create_async_engine(self.database_url, echo=False, poolclass=NullPool)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as exc:
            # a missing driver for the configured URL surfaces here too
            LOGGER.warning("Structured image store unavailable", url=self.database_url, error=str(exc))
            if engine is not None:
                await engine.dispose()
            return False

        self._engine = engine
        self._session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        return True

    def _sessions(self) -> sessionmaker:
        if self._session_maker is None:
            raise CacheBackendError("Structured image store is not open")
        return self._session_maker

    async def read(self, key: str) -> Optional[str]:
        try:
            async with self._sessions()() as session:
                record = await session.get(ImageRecord, key)
        except SQLAlchemyError as exc:
            raise CacheBackendError(f"Structured read failed: {exc}") from exc
        return record.data if record is not None else None

    async def write(self, entry: CacheEntry) -> None:
        record = ImageRecord(
            key=entry.key,
            file_name=entry.file_name or "",
            style=entry.style if entry.style is not None else -1,
            data=entry.data,
            timestamp=entry.timestamp or 0,
        )
        try:
            async with self._sessions()() as session:
                async with session.begin():
                    await session.merge(record)
        except SQLAlchemyError as exc:
            raise CacheBackendError(f"Structured write failed: {exc}") from exc

    async def entries(self) -> List[CacheEntry]:
        try:
            async with self._sessions()() as session:
                result = await session.execute(select(ImageRecord).order_by(ImageRecord.timestamp))
                records = result.scalars().all()
        except SQLAlchemyError as exc:
            raise CacheBackendError(f"Structured dump failed: {exc}") from exc
        return [
            CacheEntry(
                key=record.key,
                data=record.data,
                file_name=record.file_name,
                style=record.style,
                timestamp=record.timestamp,
            )
            for record in records
        ]

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_maker = None


class KeyValueFileStore(CacheBackend):
    """Flat string namespace persisted as one JSON document, capped by a byte quota.

    Keys are stored under `prefix` so unrelated values sharing the file never collide.
    The synchronous `get_item`/`set_item` pair is the storage API; `read`/`write` adapt it.
    """

    name = "fallback"

    def __init__(self, path: Path, prefix: str, quota_bytes: int) -> None:
        self.path = Path(path)
        self.prefix = prefix
        self.quota_bytes = quota_bytes

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text())
        except (OSError, ValueError) as exc:
            raise CacheBackendError(f"Fallback store unreadable: {exc}") from exc
        if not isinstance(raw, dict):
            raise CacheBackendError("Fallback store is not a key-value document")
        return raw

    def _save(self, items: Dict[str, str]) -> None:
        payload = json.dumps(items)
        if len(payload.encode("utf-8")) > self.quota_bytes:
            raise QuotaExceededError(
                f"Storage quota exceeded ({self.quota_bytes} bytes) at {self.path}"
            )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            tmp_path.write_text(payload)
            tmp_path.replace(self.path)
        except OSError as exc:
            raise CacheBackendError(f"Fallback write failed: {exc}") from exc

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(self.prefix + key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[self.prefix + key] = value
        self._save(items)

    async def read(self, key: str) -> Optional[str]:
        return self.get_item(key)

    async def write(self, entry: CacheEntry) -> None:
        self.set_item(entry.key, entry.data)

    async def entries(self) -> List[CacheEntry]:
        return [
            CacheEntry(key=name[len(self.prefix):], data=value)
            for name, value in self._load().items()
            if name.startswith(self.prefix)
        ]


__all__ = ["CacheEntry", "CacheBackend", "StructuredImageStore", "KeyValueFileStore"]
