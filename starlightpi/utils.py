import asyncio
import logging
from io import BytesIO
from urllib.parse import quote

import aiohttp
from PIL import Image

from .errors import FetchError
from .request import RenderRequest, SKIN_URL_PLACEHOLDER


__all__ = [
    "CONNECT_TIMEOUT",
    "READ_TIMEOUT",
    "build_url",
    "resolve_skin_url",
    "decode_image",
    "aspect_ratio",
    "fetch_render",
]

log = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0
READ_TIMEOUT = 5.0


def resolve_skin_url(template: str, identifier: str) -> str:
    """Fill a custom skin URL template

    Parameters
    ----------
    template: str
        URL template, every ``{{username}}`` is replaced
    identifier: str
        The username to insert (percent encoded)

    Returns
    -------
    str
        The resolved skin URL
    """
    return template.replace(SKIN_URL_PLACEHOLDER, quote(identifier, safe=""))


def build_url(request: RenderRequest) -> str:
    """Build the render URL for a request

    The URL doubles as cache key, so it only depends on the fields which change the rendered image.

    Parameters
    ----------
    request: RenderRequest
        The request to build the URL for

    Returns
    -------
    str
        ``{base_url}/render/{render_type}/{identifier}/{crop_type}`` with an optional
        ``skinUrl`` query parameter
    """
    url = "{}/render/{}/{}/{}".format(
        request.base_url.rstrip("/"),
        request.render_type.name.lower(),
        quote(request.identifier, safe=""),
        request.crop_type.name.lower(),
    )

    if request.skin_url:
        skin_url = resolve_skin_url(request.skin_url, request.identifier)
        url += "?skinUrl=" + quote(skin_url, safe=":/")
    return url


def decode_image(data: bytes) -> Image.Image:
    """Decode raw image bytes into a fully loaded RGBA image

    Raises
    ------
    OSError
        The data is not a readable image
    """
    im = Image.open(BytesIO(data))
    im.load()
    if im.mode != "RGBA":
        im = im.convert(mode="RGBA")
    return im


def aspect_ratio(image: Image.Image) -> float:
    """Height divided by width of the given image"""
    return image.height / image.width


async def fetch_render(
        url: str,
        session: aiohttp.ClientSession = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
) -> Image.Image:
    """Download and decode a rendered skin

    Decoding happens in the default executor so the event loop is not blocked.

    Parameters
    ----------
    url: str
        The render URL, usually obtained from :py:func:`build_url`
    session: aiohttp.ClientSession
        The ClientSession to use for requests
        Defaults to a new session which is closed again after handling all requests
    connect_timeout: float
        Seconds to wait for the connection
    read_timeout: float
        Seconds to wait for each read of the response

    Returns
    -------
    PIL.Image.Image
        The decoded render in RGBA mode

    Raises
    ------
    errors.FetchError
        The request failed, timed out, returned a non 200 status or the body is not an image
    """
    if session is None:
        session = aiohttp.ClientSession()
        close = True
    else:
        close = False

    timeout = aiohttp.ClientTimeout(total=None, sock_connect=connect_timeout, sock_read=read_timeout)
    log.debug("Fetching render %s", url)
    try:
        async with session.get(url, timeout=timeout) as resp:
            if resp.status != 200:
                raise FetchError(url, f"unexpected status {resp.status}")
            data = await resp.read()
    except asyncio.TimeoutError as e:
        raise FetchError(url, "timed out") from e
    except aiohttp.ClientError as e:
        raise FetchError(url, str(e) or type(e).__name__) from e
    finally:
        if close:
            await session.close()

    loop = asyncio.get_running_loop()
    try:
        im = await loop.run_in_executor(None, decode_image, data)
    except (OSError, Image.DecompressionBombError) as e:
        raise FetchError(url, f"response is not a valid image ({e})") from e

    log.debug("Fetched render %s (%dx%d)", url, im.width, im.height)
    return im
