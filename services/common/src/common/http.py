"""Standard HTTP client helpers for the wedding card API."""

from __future__ import annotations

from typing import Dict, Optional

import httpx

USER_AGENT = "WeddingCard/1.0"


def _build_headers(bearer_token: Optional[str]) -> Dict[str, str]:
    headers: Dict[str, str] = {"User-Agent": USER_AGENT}
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    return headers


def build_async_client(
    base_url: str,
    bearer_token: Optional[str] = None,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Provide a configured async HTTP client.

    `timeout=None` disables local timeouts; failures are detected from the response only.
    """

    return httpx.AsyncClient(
        base_url=base_url,
        timeout=timeout,
        headers=_build_headers(bearer_token),
        transport=transport,
    )


__all__ = ["build_async_client"]
