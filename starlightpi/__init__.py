from .cache import CACHE_TTL, CachedSkin, SkinCache
from .errors import StarlightError, ConfigurationError, FetchError
from .renderer import RenderResult, SkinRenderer
from .request import (
    DEFAULT_BASE_URL,
    CropType,
    RenderType,
    RenderRequest,
    RequestBuilder,
)

from .utils import (
    build_url,
    resolve_skin_url,
    fetch_render,
)


def builder() -> RequestBuilder:
    """Shortcut for creating a new :py:class:`RequestBuilder`"""
    return RequestBuilder()
