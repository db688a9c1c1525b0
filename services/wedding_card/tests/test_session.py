"""Tests for the optimization session."""

from __future__ import annotations

import asyncio

import pytest

from wedding_card.cache import ImageCache
from wedding_card.errors import StaleResultError, TransportError, ValidationError
from wedding_card.media import SelectedFile, VariantKind, decode_data_url, encode_data_url
from wedding_card.session import OptimizationPhase, OptimizationSession

from conftest import FakeApi, make_png


class TestCacheHit:
    """Optimized images already cached never reach the network."""

    @pytest.mark.asyncio
    async def test_hit_makes_no_request(
        self, session: OptimizationSession, image_cache: ImageCache, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        cached = encode_data_url(make_png(color=(1, 2, 3)), "image/png")
        await image_cache.set(photo.name, 1, cached)

        variant = await session.request_optimized(photo, 1)

        assert fake_api.optimize_calls == []
        assert variant.kind == VariantKind.OPTIMIZED
        assert variant.data_url == cached
        assert variant.style == 1
        assert variant.from_cache is True
        assert session.phase == OptimizationPhase.READY

    @pytest.mark.asyncio
    async def test_hit_for_other_style_is_a_miss(
        self, session: OptimizationSession, image_cache: ImageCache, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        """A cached style 0 result does not satisfy a style 2 request."""
        await image_cache.set(photo.name, 0, encode_data_url(b"cached", "image/png"))

        await session.request_optimized(photo, 2)

        assert len(fake_api.optimize_calls) == 1


class TestCacheMiss:
    """Misses go to the optimize endpoint and are cached in the background."""

    @pytest.mark.asyncio
    async def test_miss_fetches_and_persists(
        self, session: OptimizationSession, image_cache: ImageCache, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        variant = await session.request_optimized(photo, 0)

        assert len(fake_api.optimize_calls) == 1
        assert variant.from_cache is False
        assert variant.content == fake_api.optimized_bytes
        assert variant.media_type == "image/png"

        await session.drain()
        assert await image_cache.get(photo.name, 0) == variant.data_url

    @pytest.mark.asyncio
    async def test_request_carries_file_and_style(
        self, session: OptimizationSession, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        """The multipart body holds the image bytes and the style index."""
        await session.request_optimized(photo, 3)

        body = fake_api.optimize_calls[0]["body"]
        assert photo.data in body
        assert b'name="imageStyleIndex"' in body
        assert b'name="image"; filename="photo.png"' in body

    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(
        self, session: OptimizationSession, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        """Once persisted, the same pair is not optimized twice."""
        first = await session.request_optimized(photo, 0)
        await session.drain()
        second = await session.request_optimized(photo, 0)

        assert len(fake_api.optimize_calls) == 1
        assert second.from_cache is True
        assert decode_data_url(second.data_url) == decode_data_url(first.data_url)


class TestFailures:
    """Failed optimizations surface errors and cache nothing."""

    @pytest.mark.asyncio
    async def test_server_error_raises_transport_error(
        self, session: OptimizationSession, image_cache: ImageCache, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        fake_api.optimize_status = 500

        with pytest.raises(TransportError) as excinfo:
            await session.request_optimized(photo, 0)

        assert excinfo.value.message == "quota exceeded"
        assert excinfo.value.status_code == 500
        assert session.phase == OptimizationPhase.FAILED
        await session.drain()
        assert await image_cache.get(photo.name, 0) is None

    @pytest.mark.asyncio
    async def test_bad_request_raises_validation_error(
        self, session: OptimizationSession, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        fake_api.optimize_status = 400
        fake_api.optimize_error = "Invalid image style selected"

        with pytest.raises(ValidationError, match="Invalid image style selected"):
            await session.request_optimized(photo, 0)


class TestSupersession:
    """Results whose request is no longer current are dropped."""

    @pytest.mark.asyncio
    async def test_stale_result_is_not_returned_or_cached(
        self, session: OptimizationSession, image_cache: ImageCache, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        fake_api.optimize_gate = asyncio.Event()
        current = {"value": True}

        task = asyncio.create_task(session.request_optimized(photo, 0, lambda: current["value"]))
        while not fake_api.optimize_calls:
            await asyncio.sleep(0)
        assert session.phase == OptimizationPhase.PENDING

        current["value"] = False
        fake_api.optimize_gate.set()

        with pytest.raises(StaleResultError):
            await task
        assert session.phase == OptimizationPhase.DISCARDED
        await session.drain()
        assert await image_cache.get(photo.name, 0) is None

    @pytest.mark.asyncio
    async def test_stale_failure_is_not_reported(
        self, session: OptimizationSession, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        """An error for a superseded request becomes StaleResultError."""
        fake_api.optimize_status = 500
        fake_api.optimize_gate = asyncio.Event()
        current = {"value": True}

        task = asyncio.create_task(session.request_optimized(photo, 0, lambda: current["value"]))
        while not fake_api.optimize_calls:
            await asyncio.sleep(0)
        current["value"] = False
        fake_api.optimize_gate.set()

        with pytest.raises(StaleResultError):
            await task

    @pytest.mark.asyncio
    async def test_superseded_during_cache_lookup(
        self, session: OptimizationSession, image_cache: ImageCache, fake_api: FakeApi, photo: SelectedFile
    ) -> None:
        """A request superseded before the cache answers never calls the endpoint."""
        await image_cache.set(photo.name, 0, encode_data_url(b"cached", "image/png"))

        with pytest.raises(StaleResultError):
            await session.request_optimized(photo, 0, lambda: False)
        assert fake_api.optimize_calls == []
