from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

import cairo
from PIL import Image, ImageDraw

from badgeforge.canvas.errors import ImageDecodeError
from badgeforge.canvas.fonts import shape_text, truetype_for
from badgeforge.canvas.images import decode_image, encode_png
from badgeforge.canvas.object import BoundText, Checkbox, FieldStyle, ImageField
from badgeforge.canvas.placeholders import render_text
from badgeforge.canvas.preview import parse_color
from badgeforge.canvas.template import Template
from badgeforge.canvas.transform import CoordinateTransform, PlacedBox

logger = logging.getLogger(__name__)

# Raster resolution used when embedding images in the document
EMBED_DPI = 300


@dataclass(frozen=True)
class PlacedField:
    """A field resolved for one record and placed in document space."""

    id: str
    kind: str
    box: PlacedBox
    style: FieldStyle
    font_size_pt: float
    text: str = ""
    checked: bool = False
    data: bytes = b""


class PdfExporter:
    """Render a template plus one record into a single-page PDF.

    The page is the template's fixed physical size. Only the clean
    background is drawn; the preview composite is never read here.
    """

    def layout(self, template: Template, record: Optional[Mapping[str, Any]] = None) -> list[PlacedField]:
        """Resolve and place every field. Pure: same inputs, same output."""
        record = record or {}
        tr = CoordinateTransform.for_template(template)
        placed = []
        for f in template.fields:
            box = tr.to_document_space(f)
            common = dict(id=f.id, kind=f.kind, box=box, style=f.style,
                          font_size_pt=tr.font_size_pt(f.style.font_size))
            if isinstance(f, BoundText):
                placed.append(PlacedField(text=render_text(f.content, record), **common))
            elif isinstance(f, Checkbox):
                placed.append(PlacedField(text=render_text(f.label, record), checked=f.checked, **common))
            elif isinstance(f, ImageField):
                placed.append(PlacedField(data=f.data, **common))
        return placed

    def export(self, template: Template, record: Optional[Mapping[str, Any]] = None) -> bytes:
        tr = CoordinateTransform.for_template(template)
        buf = io.BytesIO()
        surface = cairo.PDFSurface(buf, tr.doc_w, tr.doc_h)
        try:
            ctx = cairo.Context(surface)
            self._draw_background(ctx, template, tr)
            for pf in self.layout(template, record):
                ctx.save()
                ctx.transform(tr.pivot_matrix(pf.box))
                try:
                    if pf.kind == BoundText.kind:
                        self._draw_text(ctx, pf)
                    elif pf.kind == Checkbox.kind:
                        self._draw_checkbox(ctx, pf)
                    elif pf.kind == ImageField.kind:
                        self._draw_image(ctx, pf)
                finally:
                    ctx.restore()
            ctx.show_page()
        finally:
            surface.finish()
        return buf.getvalue()

    def render_to_file(self, path: str | Path, template: Template,
                       record: Optional[Mapping[str, Any]] = None) -> Path:
        p = Path(path)
        p.write_bytes(self.export(template, record))
        logger.info("Exported %s", p)
        return p

    def export_pages(self, template: Template, records: Iterable[Mapping[str, Any]]) -> list[bytes]:
        return [self.export(template, r) for r in records]

    # --- Drawing -------------------------------------------------------------------
    def _draw_background(self, ctx: cairo.Context, template: Template, tr: CoordinateTransform) -> None:
        if template.background is None:
            return
        try:
            img = decode_image(template.background.clean)
        except ImageDecodeError:
            logger.exception("Failed to decode background; exporting without it")
            return
        self._paint_image(ctx, img, 0.0, 0.0, tr.doc_w, tr.doc_h)

    @staticmethod
    def _set_color(ctx: cairo.Context, color: str) -> None:
        r, g, b, a = parse_color(color)
        ctx.set_source_rgba(r / 255.0, g / 255.0, b / 255.0, a / 255.0)

    def _draw_label(self, ctx: cairo.Context, pf: PlacedField, text: str,
                    x: float, y: float, anchor: str) -> None:
        """Rasterize ``text`` with the preview's font and paint it anchored at (x, y) pt."""
        k = EMBED_DPI / 72.0
        font = truetype_for(pf.style.font_family, int(round(pf.font_size_pt * k)), pf.style.bold)
        left, top, right, bottom = font.getbbox(text, anchor=anchor)
        if right <= left or bottom <= top:
            return
        img = Image.new("RGBA", (right - left, bottom - top), (0, 0, 0, 0))
        ImageDraw.Draw(img).text((-left, -top), text, font=font,
                                 fill=parse_color(pf.style.color), anchor=anchor)
        self._paint_image(ctx, img, x + left / k, y + top / k, (right - left) / k, (bottom - top) / k)

    def _draw_text(self, ctx: cairo.Context, pf: PlacedField) -> None:
        text = shape_text(pf.text)
        if not text:
            return
        box = pf.box
        x, anchor = {
            "left": (box.x, "ls"),
            "center": (box.x + box.w / 2.0, "ms"),
            "right": (box.x + box.w, "rs"),
        }[pf.style.align]
        # Baseline sits one font size below the box top
        self._draw_label(ctx, pf, text, x, box.y + pf.font_size_pt, anchor)

    def _draw_checkbox(self, ctx: cairo.Context, pf: PlacedField) -> None:
        box = pf.box
        side = min(box.h, box.w)
        self._set_color(ctx, pf.style.color)
        ctx.set_line_width(0.75)
        ctx.rectangle(box.x, box.y, side, side)
        ctx.stroke()
        if pf.checked:
            ctx.set_line_width(1.5)
            ctx.move_to(box.x + side * 0.2, box.y + side * 0.5)
            ctx.line_to(box.x + side * 0.4, box.y + side * 0.8)
            ctx.line_to(box.x + side * 0.8, box.y + side * 0.2)
            ctx.stroke()
        label = shape_text(pf.text)
        if label:
            self._draw_label(ctx, pf, label, box.x + side * 1.25, box.y + side / 2.0, "lm")

    def _draw_image(self, ctx: cairo.Context, pf: PlacedField) -> None:
        box = pf.box
        try:
            img = decode_image(pf.data)
        except ImageDecodeError:
            logger.warning("Image field %s could not be decoded; drawing placeholder", pf.id)
            self._draw_placeholder(ctx, box)
            return
        self._paint_image(ctx, img, box.x, box.y, box.w, box.h)

    @staticmethod
    def _draw_placeholder(ctx: cairo.Context, box: PlacedBox) -> None:
        ctx.set_source_rgb(0.5, 0.5, 0.5)
        ctx.set_line_width(0.75)
        ctx.rectangle(box.x, box.y, box.w, box.h)
        ctx.move_to(box.x, box.y)
        ctx.line_to(box.x + box.w, box.y + box.h)
        ctx.move_to(box.x, box.y + box.h)
        ctx.line_to(box.x + box.w, box.y)
        ctx.stroke()

    @staticmethod
    def _paint_image(ctx: cairo.Context, img: Image.Image, x: float, y: float, w: float, h: float) -> None:
        """Paint ``img`` stretched into the (x, y, w, h) rectangle in points."""
        if w <= 0 or h <= 0:
            return
        px_w = max(1, int(round(w / 72.0 * EMBED_DPI)))
        px_h = max(1, int(round(h / 72.0 * EMBED_DPI)))
        if img.size != (px_w, px_h):
            img = img.resize((px_w, px_h), Image.LANCZOS)
        surf = cairo.ImageSurface.create_from_png(io.BytesIO(encode_png(img)))
        ctx.save()
        ctx.translate(x, y)
        ctx.scale(w / px_w, h / px_h)
        ctx.set_source_surface(surf, 0, 0)
        ctx.paint()
        ctx.restore()
