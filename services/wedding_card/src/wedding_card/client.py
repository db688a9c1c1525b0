"""Async client for the optimize and upload endpoints."""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from common.config import settings
from common.http import build_async_client
from common.logging import get_logger

from .errors import TransportError, ValidationError

LOGGER = get_logger(__name__)

OPTIMIZE_PATH = "/api/optimize-image"
UPLOAD_PATH = "/api/upload"


class OptimizedImage(BaseModel):
    """Image bytes returned by the optimize endpoint."""

    data: bytes
    media_type: str = "image/png"


class UploadResult(BaseModel):
    """Upload endpoint success payload."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = ""
    file_id: Optional[str] = Field(default=None, alias="fileId")
    file_link: Optional[str] = Field(default=None, alias="fileLink")


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or fallback
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return fallback


def _raise_for_status(response: httpx.Response, fallback: str) -> None:
    if response.status_code == 200:
        return
    message = _error_message(response, fallback)
    if response.status_code == 400:
        raise ValidationError(message)
    raise TransportError(message, status_code=response.status_code)


class WeddingCardClient:
    """Calls `/api/optimize-image` and `/api/upload`.

    No local timeouts are applied; failure is whatever the server or the transport reports.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url or settings.api_base_url
        self._client = http_client or build_async_client(self.base_url)

    async def __aenter__(self) -> "WeddingCardClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def optimize(self, name: str, data: bytes, media_type: str, style: int) -> OptimizedImage:
        """Send raw image bytes plus style index, return the generated image."""
        files = {"image": (name, data, media_type)}
        form = {"imageStyleIndex": str(int(style))}
        LOGGER.info("Requesting optimized image", filename=name, style=style, size=len(data))
        try:
            response = await self._client.post(OPTIMIZE_PATH, files=files, data=form)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        _raise_for_status(response, "Unknown error")
        media_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        if not media_type.startswith("image/"):
            raise TransportError(
                f"Unexpected optimize response: {media_type or 'no content type'}",
                status_code=response.status_code,
            )
        return OptimizedImage(data=response.content, media_type=media_type)

    async def upload(self, name: str, data: bytes, media_type: str) -> UploadResult:
        """Upload the active variant."""
        files = {"file": (name, data, media_type)}
        LOGGER.info("Uploading image", filename=name, size=len(data), media_type=media_type)
        try:
            response = await self._client.post(UPLOAD_PATH, files=files)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        _raise_for_status(response, "Upload failed")
        try:
            return UploadResult.model_validate(response.json())
        except ValueError as exc:
            raise TransportError(f"Unexpected upload response: {exc}") from exc


__all__ = ["WeddingCardClient", "OptimizedImage", "UploadResult", "OPTIMIZE_PATH", "UPLOAD_PATH"]
