from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import cairo

from badgeforge.core.state import (
    CANVAS_WIDTH_PX, CANVAS_HEIGHT_PX, DOC_WIDTH_PT, DOC_HEIGHT_PT,
)

if TYPE_CHECKING:
    from badgeforge.canvas.object import Field
    from badgeforge.canvas.template import Template


def rotated_bounds(w: float, h: float, angle_deg: float) -> tuple[float, float]:
    """Axis-aligned size of a ``w`` x ``h`` box rotated by ``angle_deg``."""
    a = math.radians(float(angle_deg) % 360.0)
    ca = abs(math.cos(a))
    sa = abs(math.sin(a))
    return (w * ca + h * sa, w * sa + h * ca)


@dataclass(frozen=True)
class PlacedBox:
    """A field box in document space (points, top-left origin)."""

    x: float
    y: float
    w: float
    h: float
    angle: float = 0.0

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)


class CoordinateTransform:
    """Maps design-canvas pixels onto the fixed-size document page.

    Each axis is scaled independently, then the print offset is added in
    document units. Rotation is carried through unchanged and is applied
    about the center of the scaled box, never about the page origin.
    """

    def __init__(
        self,
        canvas_w: float = CANVAS_WIDTH_PX,
        canvas_h: float = CANVAS_HEIGHT_PX,
        doc_w: float = DOC_WIDTH_PT,
        doc_h: float = DOC_HEIGHT_PT,
        offset_x: float = 0.0,
        offset_y: float = 0.0,
    ) -> None:
        if canvas_w <= 0 or canvas_h <= 0:
            raise ValueError("Canvas size must be positive")
        self.doc_w = float(doc_w)
        self.doc_h = float(doc_h)
        self.scale_x = self.doc_w / float(canvas_w)
        self.scale_y = self.doc_h / float(canvas_h)
        self.offset_x = float(offset_x)
        self.offset_y = float(offset_y)

    @classmethod
    def for_template(cls, template: "Template") -> "CoordinateTransform":
        return cls(
            canvas_w=template.width,
            canvas_h=template.height,
            offset_x=template.print_offset_x,
            offset_y=template.print_offset_y,
        )

    def to_document_space(self, field: "Field") -> PlacedBox:
        return PlacedBox(
            x=field.x * self.scale_x + self.offset_x,
            y=field.y * self.scale_y + self.offset_y,
            w=field.width * self.scale_x,
            h=field.height * self.scale_y,
            angle=float(field.style.rotation) % 360.0,
        )

    def font_size_pt(self, size_px: float) -> float:
        # Font sizes follow the vertical scale so glyph height tracks box height
        return float(size_px) * self.scale_y

    def pivot_matrix(self, box: PlacedBox) -> cairo.Matrix:
        """Affine that rotates ``box`` about its own center."""
        cx, cy = box.center
        m = cairo.Matrix()
        m.translate(cx, cy)
        m.rotate(math.radians(box.angle))
        m.translate(-cx, -cy)
        return m
