"""Image optimizer backed by Gemini image generation and Pillow post-processing."""

from __future__ import annotations

import asyncio
import io
from typing import Optional, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from PIL import Image, UnidentifiedImageError

from common.config import settings
from common.logging import get_logger

from ..errors import WeddingCardError

LOGGER = get_logger(__name__)

PNG_SAFE_MODES = {"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}


class OptimizerError(WeddingCardError):
    """The optimizer could not produce an image."""

    pass


class ImageOptimizer(Protocol):
    async def optimize(self, data: bytes, media_type: str, prompt: str) -> bytes:
        ...


def fit_inside_png(data: bytes, max_dimension: int) -> bytes:
    """Shrink to fit a `max_dimension` square (never enlarge) and re-encode as PNG."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.mode not in PNG_SAFE_MODES:
                image = image.convert("RGBA")
            image.thumbnail((max_dimension, max_dimension))
            buffer = io.BytesIO()
            image.save(buffer, format="PNG", optimize=True)
    except (UnidentifiedImageError, OSError) as exc:
        raise OptimizerError(f"Generated image could not be decoded: {exc}") from exc
    return buffer.getvalue()


class GeminiImageOptimizer:
    """Send the photo and a style prompt to Gemini, return the first generated image as PNG."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_dimension: Optional[int] = None,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.max_dimension = max_dimension or settings.optimized_max_dimension
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise OptimizerError("Gemini API key not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def optimize(self, data: bytes, media_type: str, prompt: str) -> bytes:
        client = self._get_client()
        contents = [prompt, types.Part.from_bytes(data=data, mime_type=media_type)]
        try:
            response = await client.aio.models.generate_content(model=self.model, contents=contents)
        except genai_errors.APIError as exc:
            raise OptimizerError(exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            LOGGER.error("Gemini request failed", model=self.model, error=str(exc))
            raise OptimizerError(f"Gemini request failed: {exc}") from exc

        generated = self._first_image(response)
        if generated is None:
            LOGGER.error("No image generated from Gemini", model=self.model)
            raise OptimizerError("Failed to generate optimized image")

        return await asyncio.to_thread(fit_inside_png, generated, self.max_dimension)

    @staticmethod
    def _first_image(response: types.GenerateContentResponse) -> Optional[bytes]:
        if not response.candidates:
            return None
        content = response.candidates[0].content
        for part in (content.parts if content and content.parts else []):
            inline = part.inline_data
            if inline and inline.data and (inline.mime_type or "").startswith("image/"):
                return inline.data
        return None


__all__ = ["ImageOptimizer", "GeminiImageOptimizer", "OptimizerError", "fit_inside_png"]
