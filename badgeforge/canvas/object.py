from __future__ import annotations

import uuid
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from badgeforge.core.state import (
    DEFAULT_COLOR, DEFAULT_FONT_FAMILY, DEFAULT_FONT_SIZE, MIN_FIELD_SIZE,
)
from badgeforge.canvas.errors import ImageDecodeError
from badgeforge.canvas.images import from_data_url, to_data_url
from badgeforge.canvas.placeholders import placeholder_name, make_token, CUSTOM_TEXT
from badgeforge.canvas.transform import rotated_bounds

logger = logging.getLogger(__name__)

ALIGNMENTS = ("left", "center", "right")

# Stored element types
TYPE_TEXT = "text"
TYPE_CHECKBOX = "checkbox"
TYPE_IMAGE = "image"
TYPE_BACKGROUND = "background-image"

# Older documents used these names for plain text elements
_TEXT_ALIASES = {"text", "boundText", "field", "custom-text"}

DEFAULT_X = 100.0
DEFAULT_Y = 100.0
DEFAULT_WIDTH = 100.0
DEFAULT_HEIGHT = 20.0


def new_field_id() -> str:
    return f"field_{uuid.uuid4().hex[:12]}"


@dataclass
class FieldStyle:
    font_family: str = DEFAULT_FONT_FAMILY
    font_size: float = DEFAULT_FONT_SIZE  # design px
    bold: bool = False
    align: str = "left"  # "left", "center" or "right"
    color: str = DEFAULT_COLOR
    rotation: float = 0.0  # degrees clockwise

    def __post_init__(self) -> None:
        if self.align not in ALIGNMENTS:
            self.align = "left"
        self.rotation = float(self.rotation) % 360.0


@dataclass
class Field:
    """A placed element on the design canvas.

    Geometry is in design-canvas pixels with a top-left origin. The concrete
    variant is given by ``kind``; list order in the owning template is the
    z-order (last drawn on top).
    """

    kind: ClassVar[str] = ""
    element_type: ClassVar[str] = ""

    id: str = field(default_factory=new_field_id)
    x: float = DEFAULT_X
    y: float = DEFAULT_Y
    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT
    style: FieldStyle = field(default_factory=FieldStyle)

    def __post_init__(self) -> None:
        self.width = max(float(MIN_FIELD_SIZE), float(self.width))
        self.height = max(float(MIN_FIELD_SIZE), float(self.height))

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    def bounds(self) -> tuple[float, float, float, float]:
        """Axis-aligned (x0, y0, x1, y1) of the field as drawn, rotation included."""
        bw, bh = rotated_bounds(self.width, self.height, self.style.rotation)
        cx, cy = self.center
        return (cx - bw / 2.0, cy - bh / 2.0, cx + bw / 2.0, cy + bh / 2.0)

    def contains(self, px: float, py: float) -> bool:
        x0, y0, x1, y1 = self.bounds()
        return x0 <= px <= x1 and y0 <= py <= y1

    def content_key(self) -> Any:
        return ""

    def dedupe_key(self) -> tuple:
        return (self.kind, round(self.x), round(self.y), self.content_key())

    # Minimal dict-like API, handy in the UI layer
    def get(self, key: str, default=None):
        return getattr(self, key, default)

    def __getitem__(self, key: str):
        return getattr(self, key)


@dataclass
class BoundText(Field):
    kind: ClassVar[str] = "boundText"
    element_type: ClassVar[str] = TYPE_TEXT

    content: str = ""

    @property
    def placeholder(self) -> Optional[str]:
        """Field name when the whole content is a single token."""
        return placeholder_name(self.content)

    def content_key(self) -> Any:
        return self.content


@dataclass
class Checkbox(Field):
    kind: ClassVar[str] = "checkbox"
    element_type: ClassVar[str] = TYPE_CHECKBOX

    label: str = ""
    checked: bool = False

    def content_key(self) -> Any:
        return self.label


@dataclass
class ImageField(Field):
    kind: ClassVar[str] = "image"
    element_type: ClassVar[str] = TYPE_IMAGE

    data: bytes = b""

    def content_key(self) -> Any:
        return self.data


@dataclass
class Background:
    """Template background.

    ``clean`` is the uploaded image and the only thing export and save read.
    ``composited`` holds the last preview raster with field content painted
    in; only the preview renderer writes it.
    """

    clean: bytes
    composited: Optional[bytes] = None


# --- Element codec ------------------------------------------------------------

def element_kind(el: dict) -> Optional[str]:
    """Return the field kind of a stored element, or None if unrecognized.

    ``TYPE_BACKGROUND`` is returned as-is; callers pull it out of the field list.
    """
    t = el.get("type")
    if t is None:
        # Legacy text elements carried geometry but no type
        return BoundText.kind if ("x" in el and "y" in el) else None
    if t in _TEXT_ALIASES:
        return BoundText.kind
    if t == TYPE_CHECKBOX:
        return Checkbox.kind
    if t == TYPE_IMAGE:
        return ImageField.kind
    if t == TYPE_BACKGROUND:
        return TYPE_BACKGROUND
    return None


def _num(el: dict, *keys: str, default: float) -> float:
    for k in keys:
        v = el.get(k)
        if v is not None and v != "":
            return float(v)
    return float(default)


def _first(el: dict, *keys: str, default=None):
    for k in keys:
        if el.get(k) not in (None, ""):
            return el[k]
    return default


def style_from_element(el: dict) -> FieldStyle:
    bold = el.get("bold")
    if bold is None:
        bold = el.get("is_bold")
    if bold is None:
        bold = str(el.get("fontWeight", "")).lower() == "bold"
    return FieldStyle(
        font_family=str(_first(el, "fontFamily", "font_family", default=DEFAULT_FONT_FAMILY)),
        font_size=_num(el, "fontSize", "font_size", default=DEFAULT_FONT_SIZE),
        bold=bool(bold),
        align=str(_first(el, "textAlign", "align", default="left")),
        color=str(_first(el, "color", default=DEFAULT_COLOR)),
        rotation=_num(el, "rotation", "angle", default=0.0),
    )


def text_content_from_element(el: dict) -> str:
    content = _first(el, "content", "label", "text", default="")
    field_type = el.get("fieldType")
    if not content and field_type and field_type != CUSTOM_TEXT:
        content = make_token(field_type)
    return str(content)


def field_from_element(el: dict) -> Field:
    """Build a field from a stored element.

    The element must already be known to be valid (see
    ``template.validate_document``).
    """
    kind = element_kind(el)
    common = dict(
        id=str(el.get("id") or new_field_id()),
        x=_num(el, "x", default=DEFAULT_X),
        y=_num(el, "y", default=DEFAULT_Y),
        width=_num(el, "width", default=DEFAULT_WIDTH),
        height=_num(el, "height", default=DEFAULT_HEIGHT),
        style=style_from_element(el),
    )
    if kind == BoundText.kind:
        return BoundText(content=text_content_from_element(el), **common)
    if kind == Checkbox.kind:
        return Checkbox(
            label=str(_first(el, "label", "content", default="")),
            checked=bool(el.get("checked", False)),
            **common,
        )
    if kind == ImageField.kind:
        raw = _first(el, "imageData", "content", "src", default="")
        try:
            data = from_data_url(raw) if raw else b""
        except ImageDecodeError:
            # Kept as an empty image so the field still renders its placeholder
            logger.warning("Image field %s has undecodable data", common["id"])
            data = b""
        return ImageField(data=data, **common)
    raise ValueError(f"Element of type {el.get('type')!r} is not a field")


def field_to_element(f: Field) -> dict:
    el = {
        "id": f.id,
        "type": f.element_type,
        "x": f.x,
        "y": f.y,
        "width": f.width,
        "height": f.height,
        "fontSize": f.style.font_size,
        "fontFamily": f.style.font_family,
        "bold": f.style.bold,
        "textAlign": f.style.align,
        "color": f.style.color,
        "rotation": f.style.rotation,
    }
    if isinstance(f, BoundText):
        el["fieldType"] = f.placeholder or CUSTOM_TEXT
        el["content"] = f.content
    elif isinstance(f, Checkbox):
        el["label"] = f.label
        el["checked"] = f.checked
    elif isinstance(f, ImageField):
        el["imageData"] = to_data_url(f.data) if f.data else ""
    return el


def background_to_element(bg: Background, width: float, height: float) -> dict:
    return {
        "type": TYPE_BACKGROUND,
        "content": to_data_url(bg.clean),
        "x": 0,
        "y": 0,
        "width": width,
        "height": height,
    }


def background_from_element(el: dict) -> Background:
    return Background(clean=from_data_url(_first(el, "content", "imageData", "src", default="")))
