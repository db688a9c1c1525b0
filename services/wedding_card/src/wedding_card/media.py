"""Selected files, image variants and the data-URL codec."""

from __future__ import annotations

import base64
import binascii
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from common.config import settings

from .errors import ValidationError

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def encode_data_url(data: bytes, media_type: str) -> str:
    """Encode raw bytes as a base64 `data:` URL."""
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """Split a base64 `data:` URL into `(bytes, media_type)`."""
    if not data_url.startswith("data:") or "," not in data_url:
        raise ValidationError("Malformed data URL")

    header, _, payload = data_url[5:].partition(",")
    media_type, _, encoding = header.partition(";")
    if encoding != "base64":
        raise ValidationError("Only base64 data URLs are supported")
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValidationError(f"Malformed data URL: {exc}") from exc
    return data, media_type or DEFAULT_MEDIA_TYPE


@dataclass(frozen=True)
class SelectedFile:
    """The image the guest picked: content, declared media type, size and display name."""

    name: str
    media_type: str
    data: bytes = field(repr=False)
    size: int = -1

    def __post_init__(self) -> None:
        if self.size < 0:
            object.__setattr__(self, "size", len(self.data))

    @classmethod
    def from_path(cls, path: Path | str) -> "SelectedFile":
        path = Path(path)
        media_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            media_type=media_type or DEFAULT_MEDIA_TYPE,
            data=path.read_bytes(),
        )


def validate_selection(file: SelectedFile, max_bytes: Optional[int] = None) -> None:
    """Reject non-images and files above the upload limit before any network call."""

    max_bytes = settings.max_upload_bytes if max_bytes is None else max_bytes
    if not file.media_type.startswith("image/"):
        raise ValidationError("Please select a valid image file")
    if file.size > max_bytes:
        raise ValidationError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")


class VariantKind(Enum):
    ORIGINAL = "original"
    OPTIMIZED = "optimized"


@dataclass(frozen=True)
class ImageVariant:
    """One rendering of the selected file, held as a data URL."""

    kind: VariantKind
    data_url: str = field(repr=False)
    style: Optional[int] = None
    from_cache: bool = False

    @classmethod
    def original(cls, file: SelectedFile) -> "ImageVariant":
        return cls(VariantKind.ORIGINAL, encode_data_url(file.data, file.media_type))

    @classmethod
    def optimized(cls, data_url: str, style: int, from_cache: bool = False) -> "ImageVariant":
        return cls(VariantKind.OPTIMIZED, data_url, style=style, from_cache=from_cache)

    @property
    def media_type(self) -> str:
        return decode_data_url(self.data_url)[1]

    @property
    def content(self) -> bytes:
        return decode_data_url(self.data_url)[0]


__all__ = [
    "SelectedFile",
    "ImageVariant",
    "VariantKind",
    "encode_data_url",
    "decode_data_url",
    "validate_selection",
]
