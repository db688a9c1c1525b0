# noqa: D104
"""Pytest fixtures for wedding card tests."""

from __future__ import annotations

import asyncio
import io
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncGenerator, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from PIL import Image

from wedding_card.cache import ImageCache, build_image_cache
from wedding_card.client import WeddingCardClient
from wedding_card.media import SelectedFile
from wedding_card.session import OptimizationSession
from wedding_card.selection import SelectionStateMachine


def make_png(size: Tuple[int, int] = (32, 24), color: Tuple[int, int, int] = (200, 120, 80)) -> bytes:
    """Encode a solid-color PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@dataclass
class FakeApi:
    """In-process stand-in for the optimize and upload endpoints.

    `optimize_gate` and `upload_gate`, when set, hold responses until released so tests can
    interleave other actions with a pending request.
    """

    optimized_bytes: bytes = field(default_factory=lambda: make_png(color=(10, 200, 10)))
    optimize_status: int = 200
    optimize_error: str = "quota exceeded"
    upload_status: int = 200
    upload_error: str = "Upload failed"
    optimize_gate: Optional[asyncio.Event] = None
    upload_gate: Optional[asyncio.Event] = None
    optimize_calls: List[dict] = field(default_factory=list)
    uploads: List[dict] = field(default_factory=list)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        body = await request.aread()
        if request.url.path == "/api/optimize-image":
            self.optimize_calls.append({"body": body})
            if self.optimize_gate is not None:
                await self.optimize_gate.wait()
            if self.optimize_status != 200:
                return httpx.Response(self.optimize_status, json={"error": self.optimize_error})
            return httpx.Response(200, content=self.optimized_bytes, headers={"content-type": "image/png"})

        if request.url.path == "/api/upload":
            self.uploads.append({"body": body, "content_type": request.headers.get("content-type")})
            if self.upload_gate is not None:
                await self.upload_gate.wait()
            if self.upload_status != 200:
                return httpx.Response(self.upload_status, json={"error": self.upload_error})
            payload = {
                "success": True,
                "message": "File uploaded successfully",
                "fileId": "1700000000000_photo.png",
                "fileLink": "http://testserver/queue/1700000000000_photo.png",
            }
            return httpx.Response(200, content=json.dumps(payload), headers={"content-type": "application/json"})

        return httpx.Response(404, json={"error": "Route not found"})

    def client(self) -> WeddingCardClient:
        transport = httpx.MockTransport(self.handler)
        return WeddingCardClient(
            base_url="http://testserver",
            http_client=httpx.AsyncClient(base_url="http://testserver", transport=transport),
        )


@pytest.fixture
def original_png() -> bytes:
    return make_png()


@pytest.fixture
def photo(original_png: bytes) -> SelectedFile:
    """photo.png declared as a 2 MB image/png."""
    return SelectedFile(name="photo.png", media_type="image/png", data=original_png, size=2 * 1024 * 1024)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def image_cache(tmp_path: Path) -> AsyncGenerator[ImageCache, None]:
    """Cache with both backends rooted in a temporary directory."""
    cache = build_image_cache(cache_dir=tmp_path / "cache")
    yield cache
    await cache.close()


@pytest_asyncio.fixture
async def session(fake_api: FakeApi, image_cache: ImageCache) -> AsyncGenerator[OptimizationSession, None]:
    client = fake_api.client()
    yield OptimizationSession(client, image_cache)
    await client.aclose()


@pytest.fixture
def machine(session: OptimizationSession) -> SelectionStateMachine:
    return SelectionStateMachine(session, style_count=4)
