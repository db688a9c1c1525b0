"""Upload queue: accepted photos wait in a folder until they are printed or synced."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common.config import settings
from common.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class QueuedUpload:
    file_id: str
    file_link: str
    path: Path


def _safe_name(name: str) -> str:
    safe = "".join(c for c in Path(name).name if c.isalnum() or c in "-_.")
    return safe[:100] or "upload"


class UploadQueue:
    """Writes uploads as `<epoch-ms>_<name>` under the queue directory."""

    def __init__(self, directory: Optional[Path] = None, public_base_url: Optional[str] = None) -> None:
        self.directory = Path(directory or settings.upload_queue_dir)
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def save(self, name: str, data: bytes) -> QueuedUpload:
        self.directory.mkdir(parents=True, exist_ok=True)
        file_id = f"{int(time.time() * 1000)}_{_safe_name(name)}"
        path = self.directory / file_id
        path.write_bytes(data)
        LOGGER.info(f"Queued upload: {path} ({len(data)} bytes)")
        return QueuedUpload(file_id=file_id, file_link=f"{self.public_base_url}/queue/{file_id}", path=path)


__all__ = ["UploadQueue", "QueuedUpload"]
