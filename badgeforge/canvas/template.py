from __future__ import annotations

import logging
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from badgeforge.core.state import CANVAS_WIDTH_PX, CANVAS_HEIGHT_PX, MIN_FIELD_SIZE
from badgeforge.canvas.errors import ImageDecodeError, TemplateValidationError
from badgeforge.canvas.object import (
    TYPE_BACKGROUND, Background, Field, FieldStyle, background_from_element,
    background_to_element, element_kind, field_from_element, field_to_element,
)

logger = logging.getLogger(__name__)

_GEOMETRY = ("x", "y", "width", "height")
_REQUIRED = ("x", "y")
_STYLE_KEYS = {f.name for f in dataclasses.fields(FieldStyle)}


@dataclass
class Template:
    """A named label layout: ordered fields over an optional background.

    All mutators are total: an unknown id is a no-op returning ``None`` and
    sizes are clamped to ``MIN_FIELD_SIZE``. Positions are never clamped.
    """

    name: str = "Untitled"
    id: Optional[str] = None
    width: float = CANVAS_WIDTH_PX
    height: float = CANVAS_HEIGHT_PX
    fields: list[Field] = field(default_factory=list)
    background: Optional[Background] = None
    print_offset_x: float = 0.0
    print_offset_y: float = 0.0

    # --- Queries -----------------------------------------------------------------
    def get_field(self, field_id: str) -> Optional[Field]:
        for f in self.fields:
            if f.id == field_id:
                return f
        return None

    def index_of(self, field_id: str) -> int:
        for i, f in enumerate(self.fields):
            if f.id == field_id:
                return i
        return -1

    # --- Mutators ----------------------------------------------------------------
    def add_field(self, f: Field) -> Field:
        self.fields.append(f)
        return f

    def remove_field(self, field_id: str) -> Optional[Field]:
        i = self.index_of(field_id)
        if i < 0:
            return None
        return self.fields.pop(i)

    def update_field(self, field_id: str, **patch: Any) -> Optional[Field]:
        """Swap in a copy of the field with ``patch`` applied.

        Style keys (``font_size``, ``bold``, ``rotation``...) may be given
        flat and are routed into the field's style.
        """
        i = self.index_of(field_id)
        if i < 0:
            return None
        old = self.fields[i]
        style_patch = {k: patch.pop(k) for k in list(patch) if k in _STYLE_KEYS}
        if "id" in patch:
            raise ValueError("Field id cannot be changed")
        if style_patch:
            patch["style"] = dataclasses.replace(patch.get("style", old.style), **style_patch)
        for k in ("width", "height"):
            if k in patch:
                patch[k] = max(float(MIN_FIELD_SIZE), float(patch[k]))
        new = dataclasses.replace(old, **patch)
        self.fields[i] = new
        return new

    def move_field(self, field_id: str, index: int) -> Optional[Field]:
        """Move a field to ``index`` in the z-order (clamped to the list)."""
        i = self.index_of(field_id)
        if i < 0:
            return None
        f = self.fields.pop(i)
        index = max(0, min(int(index), len(self.fields)))
        self.fields.insert(index, f)
        return f

    def replace_fields(self, fields: Iterable[Field]) -> "Template":
        self.fields = list(fields)
        return self

    def set_background(self, data: bytes) -> Background:
        self.background = Background(clean=bytes(data))
        return self.background

    def clear_background(self) -> "Template":
        self.background = None
        return self

    def set_preview_composite(self, png: Optional[bytes]) -> "Template":
        if self.background is not None:
            self.background.composited = png
        return self

    def set_print_offset(self, dx: float, dy: float) -> "Template":
        self.print_offset_x = float(dx)
        self.print_offset_y = float(dy)
        return self

    def validate(self) -> list[str]:
        return validate_document(self.to_document())

    # --- Serialization -----------------------------------------------------------
    def to_document(self) -> dict:
        elements = []
        if self.background is not None:
            elements.append(background_to_element(self.background, self.width, self.height))
        elements.extend(field_to_element(f) for f in self.fields)
        doc = {
            "name": self.name,
            "config": {
                "width": self.width,
                "height": self.height,
                "printOffsetX": self.print_offset_x,
                "printOffsetY": self.print_offset_y,
                "elements": elements,
            },
        }
        if self.id is not None:
            doc["id"] = self.id
        return doc

    @classmethod
    def from_document(cls, doc: dict) -> "Template":
        return template_from_document(doc)


def _config_of(doc: dict) -> dict:
    config = doc.get("config", doc)
    if isinstance(config, list):
        # Oldest shape: the config was just the element list
        return {"elements": config}
    if not isinstance(config, dict):
        return {}
    if "elements" not in config and "textElements" in config:
        config = dict(config, elements=config["textElements"])
    return config


def validate_document(doc: dict) -> list[str]:
    """Return every violation in a stored template document."""
    violations: list[str] = []
    if not isinstance(doc, dict):
        return ["Template document must be an object"]
    config = _config_of(doc)

    for key in ("width", "height"):
        if key in config:
            try:
                if float(config[key]) <= 0:
                    violations.append(f"Canvas {key} must be positive")
            except (TypeError, ValueError):
                violations.append(f"Canvas {key} must be a number")

    elements = config.get("elements", [])
    if not isinstance(elements, list):
        return violations + ["Elements must be a list"]

    for i, el in enumerate(elements):
        if not isinstance(el, dict):
            violations.append(f"Element {i} must be an object")
            continue
        kind = element_kind(el)
        if kind is None:
            violations.append(f"Element {i} has unrecognized type {el.get('type')!r}")
            continue
        for key in _GEOMETRY:
            if el.get(key) in (None, ""):
                # Position is required on fields; a missing size falls back to 100x20
                if key in _REQUIRED and kind != TYPE_BACKGROUND:
                    violations.append(f"Element {i} is missing {key}")
                continue
            try:
                float(el[key])
            except (TypeError, ValueError):
                violations.append(f"Element {i} has non-numeric {key}")
    return violations


def template_from_document(doc: dict) -> Template:
    """Load and normalize a stored template.

    Normalization, in order: the background element is pulled out of the
    element list; duplicates sharing (kind, rounded x, rounded y, content)
    are dropped keeping the first; if the stored canvas size differs from the
    canonical size, every field is rescaled per axis.
    """
    violations = validate_document(doc)
    if violations:
        raise TemplateValidationError(violations)

    config = _config_of(doc)
    background = None
    fields: list[Field] = []
    for el in config.get("elements", []):
        if element_kind(el) == TYPE_BACKGROUND:
            if background is not None:
                continue
            try:
                background = background_from_element(el)
            except ImageDecodeError:
                logger.exception("Dropping undecodable background")
            continue
        fields.append(field_from_element(el))

    fields = dedupe_fields(fields)

    stored_w = float(config.get("width") or CANVAS_WIDTH_PX)
    stored_h = float(config.get("height") or CANVAS_HEIGHT_PX)
    fields = rescale_fields(fields, stored_w, stored_h)

    return Template(
        name=str(doc.get("name") or "Untitled"),
        id=doc.get("id"),
        fields=fields,
        background=background,
        print_offset_x=float(config.get("printOffsetX", config.get("pdfOffsetX", 0)) or 0),
        print_offset_y=float(config.get("printOffsetY", config.get("pdfOffsetY", 0)) or 0),
    )


def dedupe_fields(fields: Iterable[Field]) -> list[Field]:
    out: list[Field] = []
    seen: set = set()
    for f in fields:
        key = f.dedupe_key()
        if key in seen:
            logger.debug("Dropping duplicate field %s at (%s, %s)", f.id, f.x, f.y)
            continue
        seen.add(key)
        out.append(f)
    return out


def rescale_fields(
    fields: Iterable[Field],
    from_w: float,
    from_h: float,
    to_w: float = CANVAS_WIDTH_PX,
    to_h: float = CANVAS_HEIGHT_PX,
) -> list[Field]:
    """Map field geometry from a ``from_w`` x ``from_h`` canvas onto the target."""
    fields = list(fields)
    if (from_w, from_h) == (to_w, to_h):
        return fields
    sx = to_w / from_w
    sy = to_h / from_h
    logger.info("Rescaling %d fields from %gx%g to %gx%g", len(fields), from_w, from_h, to_w, to_h)
    return [
        dataclasses.replace(f, x=f.x * sx, y=f.y * sy, width=f.width * sx, height=f.height * sy)
        for f in fields
    ]
