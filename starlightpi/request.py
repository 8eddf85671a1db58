import enum
import typing
from typing import Optional

from .errors import ConfigurationError

if typing.TYPE_CHECKING:
    from .renderer import SkinRenderer, RenderResult, DrawCallback


__all__ = [
    "DEFAULT_BASE_URL",
    "DEFAULT_SIZE",
    "SKIN_URL_PLACEHOLDER",
    "CropType",
    "RenderType",
    "RenderRequest",
    "RequestBuilder",
]

DEFAULT_BASE_URL = "https://starlightskins.lunareclipse.studio"
DEFAULT_SIZE = 64.0
SKIN_URL_PLACEHOLDER = "{{username}}"


class CropType(enum.Enum):
    """How much of the rendered player is included in the image

    FULL shows the whole body, BUST the upper body and FACE only the face.
    """
    FULL = "full"
    BUST = "bust"
    FACE = "face"


class RenderType(enum.Enum):
    """The 3D poses offered by the Starlight Skins API

    Some poses only support a subset of :py:class:`CropType`, see :py:attr:`supported_crops`.
    """
    DEFAULT = "default"
    MARCHING = "marching"
    MOJAVATAR = "mojavatar"
    SLEEPING = "sleeping"
    HEAD = "head"
    CLOWN = "clown"
    HIGH_GROUND = "high_ground"
    READING = "reading"
    KICKING = "kicking"
    ARCHER = "archer"
    DEAD = "dead"
    FACEPALM = "facepalm"
    DUNGEONS = "dungeons"
    LUNGING = "lunging"
    POINTING = "pointing"
    COWERING = "cowering"
    TRUDGING = "trudging"
    RELAXING = "relaxing"
    CHEERING = "cheering"
    ISOMETRIC = "isometric"
    ULTIMATE = "ultimate"
    CRISS_CROSS = "criss_cross"
    WALKING = "walking"

    @property
    def supported_crops(self) -> frozenset:
        """The crop types this pose can be rendered with"""
        return _SUPPORTED_CROPS.get(self, _ALL_CROPS)


_ALL_CROPS = frozenset(CropType)
_SUPPORTED_CROPS = {
    RenderType.MOJAVATAR: frozenset({CropType.FULL, CropType.BUST}),
    RenderType.SLEEPING: frozenset({CropType.FULL, CropType.BUST}),
    RenderType.HEAD: frozenset({CropType.FULL}),
}


class RenderRequest:
    """Everything needed to fetch and place a single skin render

    Only ``identifier``, ``render_type``, ``crop_type``, ``base_url`` and ``skin_url``
    end up in the request URL. The remaining fields describe where the image is displayed.

    Parameters
    ----------
    identifier: str
        Minecraft username (or whatever identifier the skin API accepts)
    render_type: RenderType
        The pose to render
    crop_type: CropType
        How much of the player to include
    base_url: str
        Base URL of the render API
    skin_url: str
        Optional custom skin URL template. Every ``{{username}}`` is replaced with the identifier
    x: float
        Horizontal anchor of the image
    y: float
        Vertical anchor of the image
    size: float
        Display width of the image, has to be positive
    centered: bool
        Whether the image is centered on the anchor instead of starting at it
    """
    def __init__(
            self,
            identifier: str = "",
            render_type: RenderType = RenderType.DEFAULT,
            crop_type: CropType = CropType.FULL,
            base_url: str = DEFAULT_BASE_URL,
            skin_url: Optional[str] = None,
            x: float = 0.0,
            y: float = 0.0,
            size: float = DEFAULT_SIZE,
            centered: bool = False,
    ):
        if size <= 0:
            raise ValueError("Size must be positive")

        self.identifier = identifier
        self.render_type = render_type
        self.crop_type = crop_type
        self.base_url = base_url
        self.skin_url = skin_url
        self.x = x
        self.y = y
        self.size = size
        self.centered = centered

    def __repr__(self):
        return (
            f"<RenderRequest (identifier={self.identifier}) (render_type={self.render_type.name}) "
            f"(crop_type={self.crop_type.name})>"
        )

    def validate(self):
        """Make sure the crop type can be rendered with the chosen render type

        Raises
        ------
        errors.ConfigurationError
            The crop type is not supported by the render type
        """
        if self.crop_type not in self.render_type.supported_crops:
            raise ConfigurationError(
                f"Crop type {self.crop_type.name} is not supported by render type {self.render_type.name}"
            )


class RequestBuilder:
    """Fluent helper to put together a :py:class:`RenderRequest`

    Every setter returns the builder itself so calls can be chained::

        result = await (
            RequestBuilder()
            .username("sucr_kolli")
            .render_type(RenderType.MARCHING)
            .position(100, 200)
            .scale(150)
            .centered(True)
            .render(renderer)
        )
    """
    def __init__(self):
        self._identifier: str = ""
        self._render_type: RenderType = RenderType.DEFAULT
        self._crop_type: CropType = CropType.FULL
        self._base_url: str = DEFAULT_BASE_URL
        self._skin_url: Optional[str] = None
        self._x: float = 0.0
        self._y: float = 0.0
        self._size: float = DEFAULT_SIZE
        self._centered: bool = False

    def username(self, username: str) -> "RequestBuilder":
        self._identifier = _require(username, "Username")
        return self

    def render_type(self, render_type: RenderType) -> "RequestBuilder":
        self._render_type = _require(render_type, "Render type")
        return self

    def crop_type(self, crop_type: CropType) -> "RequestBuilder":
        self._crop_type = _require(crop_type, "Crop type")
        return self

    def base_url(self, base_url: str) -> "RequestBuilder":
        self._base_url = _require(base_url, "Base URL")
        return self

    def custom_skin_url(self, skin_url: Optional[str]) -> "RequestBuilder":
        """Fetch the skin from a custom URL template instead of the players mojang skin

        Parameters
        ----------
        skin_url: str
            URL template, ``{{username}}`` gets replaced with the username. ``None`` resets it
        """
        self._skin_url = skin_url
        return self

    def position(self, x: float, y: float) -> "RequestBuilder":
        self._x = x
        self._y = y
        return self

    def scale(self, size: float) -> "RequestBuilder":
        if size <= 0:
            raise ValueError("Scale must be positive")
        self._size = size
        return self

    def centered(self, centered: bool) -> "RequestBuilder":
        self._centered = centered
        return self

    def build(self) -> RenderRequest:
        """Create the configured :py:class:`RenderRequest`

        Raises
        ------
        errors.ConfigurationError
            The crop type is not supported by the render type
        """
        request = RenderRequest(
            identifier=self._identifier,
            render_type=self._render_type,
            crop_type=self._crop_type,
            base_url=self._base_url,
            skin_url=self._skin_url,
            x=self._x,
            y=self._y,
            size=self._size,
            centered=self._centered,
        )
        request.validate()
        return request

    async def render(self, renderer: "SkinRenderer", draw: "DrawCallback" = None) -> "RenderResult":
        """Build the request and render it right away

        Alias for ``renderer.render(builder.build(), draw)``"""
        return await renderer.render(self.build(), draw=draw)


def _require(value, what: str):
    if value is None:
        raise ValueError(f"{what} cannot be None")
    return value
