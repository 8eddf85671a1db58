import asyncio
from io import BytesIO
from types import SimpleNamespace

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from PIL import Image


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def render_png():
    """A 40x80 PNG, so the aspect ratio of the render is 2."""
    with BytesIO() as buffered:
        Image.new("RGBA", (40, 80), (255, 0, 0, 255)).save(buffered, format="PNG")
        return buffered.getvalue()


@pytest.fixture
async def skin_server(render_png):
    """Local stand-in for the render API.

    The username decides the behaviour: ``slow`` never answers in time, ``delayed``
    answers after a short pause, ``broken`` returns text and ``missing`` a 404.
    Every handled request path is recorded in ``hits``.
    """
    hits = []

    async def handle_render(request):
        hits.append(request.path_qs)
        name = request.match_info["name"]
        if name == "slow":
            await asyncio.sleep(1)
        elif name == "delayed":
            await asyncio.sleep(0.1)
        elif name == "broken":
            return web.Response(text="definitely not a png")
        elif name == "missing":
            return web.Response(status=404, text="not found")
        return web.Response(body=render_png, content_type="image/png")

    app = web.Application()
    app.router.add_get("/render/{style}/{name}/{crop}", handle_render)

    server = TestServer(app)
    await server.start_server()
    try:
        yield SimpleNamespace(
            base_url=str(server.make_url("")).rstrip("/"),
            hits=hits,
        )
    finally:
        await server.close()
