"""Error taxonomy shared by the client, the cache and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class WeddingCardError(Exception):
    """Base exception carrying a human-readable message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(WeddingCardError):
    """Rejected input: bad file type or size, invalid style index, malformed data URL."""

    pass


class TransportError(WeddingCardError):
    """Endpoint unreachable or answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CacheBackendError(WeddingCardError):
    """A cache backend could not open, read or write. Never leaves the cache store."""

    pass


class QuotaExceededError(CacheBackendError):
    """The fallback store would grow past its quota."""

    pass


class StaleResultError(WeddingCardError):
    """An optimization finished after its file selection or style was superseded."""

    pass


__all__ = [
    "WeddingCardError",
    "ValidationError",
    "TransportError",
    "CacheBackendError",
    "QuotaExceededError",
    "StaleResultError",
]
