from __future__ import annotations

import math
import logging
from typing import Any, Mapping, Optional

from PIL import Image, ImageColor, ImageDraw

from badgeforge.canvas.errors import ImageDecodeError
from badgeforge.canvas.fonts import shape_text, truetype_for
from badgeforge.canvas.images import decode_image, encode_png
from badgeforge.canvas.object import BoundText, Checkbox, Field, ImageField
from badgeforge.canvas.placeholders import render_text
from badgeforge.canvas.template import Template

logger = logging.getLogger(__name__)

PLACEHOLDER_OUTLINE = (128, 128, 128, 255)
WHITE = (255, 255, 255, 255)


def parse_color(value: str, default=(0, 0, 0, 255)) -> tuple[int, int, int, int]:
    try:
        rgb = ImageColor.getrgb(str(value))
    except ValueError:
        return default
    return (rgb[0], rgb[1], rgb[2], 255) if len(rgb) == 3 else tuple(rgb)


def draw_placeholder_glyph(draw: ImageDraw.ImageDraw, box: tuple[int, int, int, int]) -> None:
    """Outlined box with both diagonals, drawn where an image could not be decoded."""
    x0, y0, x1, y1 = box
    draw.rectangle(box, outline=PLACEHOLDER_OUTLINE, width=1)
    draw.line((x0, y0, x1, y1), fill=PLACEHOLDER_OUTLINE, width=1)
    draw.line((x0, y1, x1, y0), fill=PLACEHOLDER_OUTLINE, width=1)


class PreviewRenderer:
    """Rasterizes a template at design-canvas size for the editor.

    Field content is painted over a copy of the clean background; the clean
    bytes are never modified.
    """

    def __init__(self, preview: bool = True) -> None:
        self.preview = preview

    def base_image(self, template: Template) -> Image.Image:
        size = (int(round(template.width)), int(round(template.height)))
        if template.background is not None:
            try:
                return decode_image(template.background.clean).resize(size, Image.LANCZOS)
            except ImageDecodeError:
                logger.exception("Failed to decode background; previewing on white")
        return Image.new("RGBA", size, WHITE)

    def render(self, template: Template, record: Optional[Mapping[str, Any]] = None) -> Image.Image:
        img = self.base_image(template)
        for f in template.fields:
            layer = self._render_field(f, record or {})
            self._paste_rotated(img, layer, f)
        return img

    def render_composite(self, template: Template, record: Optional[Mapping[str, Any]] = None) -> Image.Image:
        """Render and store the result as the template's preview composite."""
        img = self.render(template, record)
        if template.background is not None:
            template.set_preview_composite(encode_png(img))
        return img

    def _render_field(self, f: Field, record: Mapping[str, Any]) -> Image.Image:
        w = max(1, int(round(f.width)))
        h = max(1, int(round(f.height)))
        layer = Image.new("RGBA", (w, h), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer, "RGBA")
        color = parse_color(f.style.color)

        if isinstance(f, BoundText):
            text = shape_text(render_text(f.content, record, preview=self.preview))
            font = truetype_for(f.style.font_family, int(round(f.style.font_size)), f.style.bold)
            anchor_x, anchor = {"left": (0, "ls"), "center": (w / 2.0, "ms"), "right": (w, "rs")}[f.style.align]
            draw.text((anchor_x, f.style.font_size), text, font=font, fill=color, anchor=anchor)

        elif isinstance(f, Checkbox):
            side = int(min(h, w)) - 1
            draw.rectangle((0, 0, side, side), outline=color, width=1)
            if f.checked:
                draw.line((side * 0.2, side * 0.5, side * 0.4, side * 0.8), fill=color, width=2)
                draw.line((side * 0.4, side * 0.8, side * 0.8, side * 0.2), fill=color, width=2)
            if f.label:
                font = truetype_for(f.style.font_family, int(round(f.style.font_size)), f.style.bold)
                label = shape_text(render_text(f.label, record, preview=self.preview))
                draw.text((side + 5, side / 2.0), label, font=font, fill=color, anchor="lm")

        elif isinstance(f, ImageField):
            try:
                src = decode_image(f.data).resize((w, h), Image.LANCZOS)
                layer.alpha_composite(src)
            except ImageDecodeError:
                logger.warning("Image field %s could not be decoded; drawing placeholder", f.id)
                draw_placeholder_glyph(draw, (0, 0, w - 1, h - 1))

        return layer

    @staticmethod
    def _paste_rotated(img: Image.Image, layer: Image.Image, f: Field) -> None:
        angle = f.style.rotation
        if angle:
            # Pillow rotates counter-clockwise; field rotation is clockwise
            layer = layer.rotate(-angle, resample=Image.BICUBIC, expand=True)
        cx, cy = f.center
        left = int(math.floor(cx - layer.width / 2.0))
        top = int(math.floor(cy - layer.height / 2.0))
        if left >= img.width or top >= img.height or left + layer.width <= 0 or top + layer.height <= 0:
            return
        img.alpha_composite(layer, dest=(max(0, left), max(0, top)), source=(max(0, -left), max(0, -top)))
