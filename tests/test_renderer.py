"""End-to-end tests for SkinRenderer against a local render API."""

import asyncio

import aiohttp
import pytest

from starlightpi import (
    CACHE_TTL,
    ConfigurationError,
    CropType,
    FetchError,
    RenderRequest,
    RenderType,
    SkinCache,
    SkinRenderer,
    builder,
)


def _request(server, name="Alice", **kwargs) -> RenderRequest:
    kwargs.setdefault("render_type", RenderType.HEAD)
    return RenderRequest(name, base_url=server.base_url, **kwargs)


class TestSkinRenderer:
    async def test_render_miss_then_hit(self, skin_server):
        async with SkinRenderer() as renderer:
            first = await renderer.render(_request(skin_server))
            second = await renderer.render(_request(skin_server))

        assert first.url == f"{skin_server.base_url}/render/head/Alice/full"
        assert first.cached is False
        assert second.cached is True
        assert second.image is first.image
        assert skin_server.hits == ["/render/head/Alice/full"]

    async def test_display_box(self, skin_server):
        async with SkinRenderer() as renderer:
            result = await renderer.render(_request(skin_server, x=100, y=200, size=50))

        assert (result.width, result.height) == (50, 100)
        assert (result.x, result.y) == (100, 200)

    async def test_centered_display_box(self, skin_server):
        async with SkinRenderer() as renderer:
            result = await renderer.render(_request(skin_server, x=100, y=200, size=50, centered=True))

        assert (result.x, result.y) == (75, 150)

    async def test_height_follows_request_size(self, skin_server):
        async with SkinRenderer() as renderer:
            await renderer.render(_request(skin_server, size=10))
            result = await renderer.render(_request(skin_server, size=30))

        assert result.cached is True
        assert result.height == 60

    async def test_draw_callback(self, skin_server):
        drawn = []

        def draw(image, width, height, x, y):
            drawn.append((image.size, width, height, x, y))

        async with SkinRenderer() as renderer:
            await renderer.render(_request(skin_server, x=5, y=6, size=20), draw=draw)

        assert drawn == [((40, 80), 20, 40, 5, 6)]

    async def test_unsupported_crop_skips_network(self, skin_server):
        drawn = []
        async with SkinRenderer() as renderer:
            with pytest.raises(ConfigurationError):
                await renderer.render(
                    _request(skin_server, crop_type=CropType.BUST),
                    draw=lambda *args: drawn.append(args),
                )

        assert skin_server.hits == []
        assert drawn == []

    async def test_sleeping_face_skips_network(self, skin_server):
        async with SkinRenderer() as renderer:
            with pytest.raises(ConfigurationError):
                await renderer.render(
                    _request(skin_server, render_type=RenderType.SLEEPING, crop_type=CropType.FACE)
                )
        assert skin_server.hits == []

    async def test_timeout_leaves_cache_empty(self, skin_server):
        async with SkinRenderer(read_timeout=0.1) as renderer:
            with pytest.raises(FetchError, match="timed out"):
                await renderer.render(_request(skin_server, "slow"))
            assert len(renderer.cache) == 0

    async def test_failure_is_logged(self, skin_server, caplog):
        async with SkinRenderer() as renderer:
            with pytest.raises(FetchError):
                await renderer.render(_request(skin_server, "broken"))

        assert "Failed to render skin" in caplog.text

    async def test_failures_are_retried_next_time(self, skin_server):
        async with SkinRenderer() as renderer:
            for _ in range(2):
                with pytest.raises(FetchError):
                    await renderer.render(_request(skin_server, "missing"))

        assert len(skin_server.hits) == 2

    async def test_concurrent_renders_share_download(self, skin_server):
        async with SkinRenderer() as renderer:
            results = await asyncio.gather(
                *[renderer.render(_request(skin_server, "delayed")) for _ in range(5)]
            )

        assert len(skin_server.hits) == 1
        assert all(r.image is results[0].image for r in results)

    async def test_expired_entry_refetched(self, skin_server, clock):
        cache = SkinCache(clock=clock)
        async with SkinRenderer(cache=cache) as renderer:
            await renderer.render(_request(skin_server))
            clock.advance(CACHE_TTL + 1)
            result = await renderer.render(_request(skin_server))

        assert result.cached is False
        assert len(skin_server.hits) == 2

    async def test_miss_purges_stale_entries(self, skin_server, clock):
        cache = SkinCache(clock=clock)
        async with SkinRenderer(cache=cache) as renderer:
            await renderer.render(_request(skin_server, "Alice"))
            clock.advance(CACHE_TTL + 1)
            await renderer.render(_request(skin_server, "Bob"))
            assert len(cache) == 1

    async def test_custom_skin_url_sent(self, skin_server):
        async with SkinRenderer() as renderer:
            await renderer.render(
                _request(skin_server, "Bob", skin_url="https://skins.example/{{username}}.png")
            )

        assert skin_server.hits == ["/render/head/Bob/full?skinUrl=https://skins.example/Bob.png"]

    async def test_render_many(self, skin_server):
        async with SkinRenderer() as renderer:
            results = await renderer.render_many([
                _request(skin_server, "Alice"),
                _request(skin_server, "missing"),
                _request(skin_server, "Bob", crop_type=CropType.FACE),
            ])

        assert results[0].url.endswith("/render/head/Alice/full")
        assert isinstance(results[1], FetchError)
        assert isinstance(results[2], ConfigurationError)

    async def test_builder_render(self, skin_server):
        async with SkinRenderer() as renderer:
            result = await (
                builder()
                .username("Alice")
                .render_type(RenderType.MARCHING)
                .crop_type(CropType.FACE)
                .base_url(skin_server.base_url)
                .scale(32)
                .render(renderer)
            )

        assert result.url.endswith("/render/marching/Alice/face")
        assert result.height == 64

    async def test_evicted_render_stays_open_for_draw(self, skin_server):
        drawn = []

        def draw(image, width, height, x, y):
            drawn.append(image.getpixel((0, 0)))

        async with SkinRenderer(cache=SkinCache(max_entries=1)) as renderer:
            results = await renderer.render_many(
                [_request(skin_server, "Alice"), _request(skin_server, "Bob")],
                draw=draw,
            )

        assert all(not isinstance(r, Exception) for r in results)
        assert drawn == [(255, 0, 0, 255)] * 2

    async def test_injected_cache_survives_close(self, skin_server):
        cache = SkinCache()
        renderer = SkinRenderer(cache=cache)
        result = await renderer.render(_request(skin_server))
        await renderer.close()

        assert len(cache) == 1
        assert cache.lookup(result.url).image.getpixel((0, 0)) == (255, 0, 0, 255)
        cache.clear()

    async def test_external_session_left_open(self, skin_server):
        async with aiohttp.ClientSession() as session:
            renderer = SkinRenderer(session=session)
            await renderer.render(_request(skin_server))
            await renderer.close()
            assert not session.closed
            assert len(renderer.cache) == 0
