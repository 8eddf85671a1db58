import asyncio
import logging
from typing import Callable, List, Optional, Union

import aiohttp
from PIL import Image

from .cache import CachedSkin, SkinCache
from .errors import StarlightError
from .request import RenderRequest
from .utils import CONNECT_TIMEOUT, READ_TIMEOUT, build_url, fetch_render


__all__ = [
    "DrawCallback",
    "RenderResult",
    "SkinRenderer",
]

log = logging.getLogger(__name__)

DrawCallback = Callable[[Image.Image, float, float, float, float], None]


class RenderResult:
    """Outcome of a successful render

    Parameters
    ----------
    image: PIL.Image.Image
        The render. Owned by the cache and only guaranteed to be open while ``draw`` runs
    width: float
        Display width
    height: float
        Display height, derived from the width and the aspect ratio of the render
    x: float
        Horizontal origin of the display box
    y: float
        Vertical origin of the display box
    url: str
        The render URL (cache key)
    cached: bool
        Whether the render was served from cache
    """
    def __init__(self, image, width, height, x, y, url, cached):
        self.image: Image.Image = image
        self.width: float = width
        self.height: float = height
        self.x: float = x
        self.y: float = y
        self.url: str = url
        self.cached: bool = cached

    def __repr__(self):
        return f"<RenderResult (url={self.url}) (box={self.x},{self.y},{self.width}x{self.height}) (cached={self.cached})>"


class SkinRenderer:
    """Fetches skin renders and hands them to a draw callback

    Renders are downloaded once and cached by URL for :py:attr:`SkinCache.ttl` seconds.
    The renderer owns its cache (unless one is passed) and, if it created it, its session.
    Use it as an async context manager or call :py:meth:`close` when done.

    Parameters
    ----------
    session: aiohttp.ClientSession
        ClientSession to use for requests
        Defaults to a new session which is closed again by :py:meth:`close`
    cache: SkinCache
        Cache to use, defaults to a new :py:class:`SkinCache`
    connect_timeout: float
        Seconds to wait for the connection to the render API
    read_timeout: float
        Seconds to wait for each read of the response
    """
    def __init__(
            self,
            session: aiohttp.ClientSession = None,
            cache: SkinCache = None,
            connect_timeout: float = CONNECT_TIMEOUT,
            read_timeout: float = READ_TIMEOUT,
    ):
        self._session: Optional[aiohttp.ClientSession] = session
        self._close_session: bool = False
        self._cache: SkinCache = cache if cache is not None else SkinCache()
        self._own_cache: bool = cache is None
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout

    def __repr__(self):
        return f"<SkinRenderer (cache={self._cache})>"

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def cache(self):
        """The :py:class:`SkinCache` used by this renderer"""
        return self._cache

    async def close(self):
        """Clear the cache and close the session if they were created by this renderer"""
        if self._own_cache:
            self._cache.clear()
        if self._close_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._close_session = False

    async def render(self, request: RenderRequest, draw: DrawCallback = None) -> RenderResult:
        """Render a skin

        Warning
        -------
        Cache misses do one API call to the render API. Concurrent renders of the same URL
        share that call.

        Parameters
        ----------
        request: RenderRequest
            What to render and where to put it
        draw: Callable
            Called as ``draw(image, width, height, x, y)`` once the render is available

        Returns
        -------
        RenderResult
            The render and its display box

        Raises
        ------
        errors.ConfigurationError
            The crop type is not supported by the render type. Nothing is fetched
        errors.FetchError
            The render could not be downloaded or decoded. The cache is left untouched
        """
        request.validate()
        url = build_url(request)

        entry = self._cache.lookup(url, pin=True)
        cached = entry is not None
        if not cached:
            self._cache.purge_expired()
            try:
                entry = await self._cache.get_or_fetch(url, lambda: self._fetch(url, request.size))
            except StarlightError as e:
                log.warning("Failed to render skin: %s", e)
                raise

        try:
            width = request.size
            height = entry.height_for(width)
            x = request.x - width / 2 if request.centered else request.x
            y = request.y - height / 2 if request.centered else request.y

            result = RenderResult(entry.image, width, height, x, y, url, cached)
            if draw is not None:
                draw(result.image, result.width, result.height, result.x, result.y)
        finally:
            entry.unpin()
        return result

    async def render_many(
            self,
            requests: List[RenderRequest],
            draw: DrawCallback = None,
    ) -> List[Union[RenderResult, StarlightError]]:
        """Render multiple skins concurrently

        Parameters
        ----------
        requests: list
            A list of :py:class:`RenderRequest` objects
        draw: Callable
            Passed on to :py:meth:`render`

        Returns
        -------
        list
            A :py:class:`RenderResult` or the raised error for each request, in order
        """
        return await asyncio.gather(
            *[self.render(r, draw=draw) for r in requests],
            return_exceptions=True,
        )

    def _get_session(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._close_session = True
        return self._session

    async def _fetch(self, url, size):
        im = await fetch_render(
            url,
            session=self._get_session(),
            connect_timeout=self._connect_timeout,
            read_timeout=self._read_timeout,
        )
        return CachedSkin(im, size)
