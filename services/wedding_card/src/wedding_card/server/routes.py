"""REST API endpoints: health, image optimization and upload."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response

from common.config import settings
from common.logging import get_logger

from ..errors import ValidationError
from ..styles import StyleCatalog, load_style_catalog
from .optimizer import GeminiImageOptimizer, ImageOptimizer, OptimizerError
from .uploads import UploadQueue

LOGGER = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["wedding-card"])


@lru_cache(maxsize=1)
def get_style_catalog() -> StyleCatalog:
    return load_style_catalog()


@lru_cache(maxsize=1)
def get_optimizer() -> ImageOptimizer:
    return GeminiImageOptimizer()


def get_upload_queue() -> UploadQueue:
    return UploadQueue()


def uploads_enabled() -> bool:
    return settings.enable_upload_image


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.get("/health")
async def health() -> dict[str, Any]:
    """Liveness check."""
    return {"status": "Server is running", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.post("/optimize-image")
async def optimize_image(
    request: Request,
    image: Optional[UploadFile] = File(None),
    image_style_index: Optional[str] = Form(None, alias="imageStyleIndex"),
    catalog: StyleCatalog = Depends(get_style_catalog),
    optimizer: ImageOptimizer = Depends(get_optimizer),
) -> Response:
    """
    Restyle an uploaded photo with the prompt at `imageStyleIndex`.

    Returns the generated image as PNG, fit inside the configured square.
    """
    ip = _client_ip(request)
    if image is None:
        LOGGER.warning("Image optimization attempt without file", ip=ip)
        raise HTTPException(status_code=400, detail="No image uploaded")

    media_type = image.content_type or ""
    if not media_type.startswith("image/"):
        LOGGER.warning("Invalid file type for optimization", mimetype=media_type, ip=ip)
        raise HTTPException(status_code=400, detail="File must be an image")

    if len(catalog) == 0:
        LOGGER.error("No image style prompts found")
        raise HTTPException(status_code=500, detail="Image style prompts not configured")

    try:
        style = catalog.parse_index(image_style_index)
    except ValidationError as exc:
        LOGGER.warning("Invalid image style index", image_style_index=image_style_index, ip=ip)
        raise HTTPException(status_code=400, detail=exc.message)

    data = await image.read()
    LOGGER.info(
        "Image optimization started",
        filename=image.filename,
        filesize=len(data),
        mimetype=media_type,
        image_style_index=style,
        ip=ip,
    )

    try:
        optimized = await optimizer.optimize(data, media_type, catalog.prompt_for(style))
    except OptimizerError as exc:
        LOGGER.error("Image optimization error", error=exc.message, filename=image.filename, ip=ip)
        raise HTTPException(status_code=500, detail=exc.message)
    except Exception as exc:
        LOGGER.exception("Unexpected image optimization error", filename=image.filename, ip=ip)
        raise HTTPException(status_code=500, detail=str(exc) or exc.__class__.__name__)

    LOGGER.info(
        "Image optimization completed successfully",
        filename=image.filename,
        original_size=len(data),
        optimized_size=len(optimized),
        image_style_index=style,
        ip=ip,
    )
    return Response(
        content=optimized,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="optimized_{int(time.time() * 1000)}.png"'},
    )


@router.post("/upload")
async def upload(
    request: Request,
    file: Optional[UploadFile] = File(None),
    enabled: bool = Depends(uploads_enabled),
    queue: UploadQueue = Depends(get_upload_queue),
) -> dict[str, Any]:
    """Queue the guest's photo for printing."""
    ip = _client_ip(request)
    if not enabled:
        LOGGER.warning("Upload attempt while uploads are disabled", ip=ip)
        raise HTTPException(status_code=503, detail="File uploads are currently disabled")

    if file is None:
        LOGGER.warning("Upload attempt without file", ip=ip)
        raise HTTPException(status_code=400, detail="No file uploaded")

    data = await file.read()
    LOGGER.info("File upload started", filename=file.filename, filesize=len(data), mimetype=file.content_type, ip=ip)

    try:
        queued = queue.save(file.filename or "upload", data)
    except OSError as exc:
        LOGGER.error("Upload error", error=str(exc), filename=file.filename, ip=ip)
        raise HTTPException(status_code=500, detail=f"Upload failed: {exc}")

    return {
        "success": True,
        "message": "File uploaded successfully",
        "fileId": queued.file_id,
        "fileLink": queued.file_link,
    }


__all__ = ["router", "get_style_catalog", "get_optimizer", "get_upload_queue", "uploads_enabled"]
