import io
import logging
from unittest.mock import patch

import pikepdf
import pytest
from PIL import Image

from badgeforge.canvas import export as export_module
from badgeforge.canvas.export import PdfExporter
from badgeforge.canvas.fonts import truetype_for
from badgeforge.canvas.images import decode_image
from badgeforge.canvas.object import BoundText, FieldStyle, ImageField
from badgeforge.canvas.pdf_combiner import PDFCombiner, combine_documents
from badgeforge.canvas.surface import DesignerSession
from badgeforge.canvas.template import Template


def _pages(data: bytes):
    with pikepdf.Pdf.open(io.BytesIO(data)) as pdf:
        return [[float(v) for v in page.mediabox] for page in pdf.pages]


def test_export_is_single_4x6_page(full_template):
    data = PdfExporter().export(full_template, {"firstName": "Ada"})
    assert data.startswith(b"%PDF")
    assert _pages(data) == [[0.0, 0.0, 288.0, 432.0]]


def test_layout_places_bound_field():
    t = Template(print_offset_x=3, print_offset_y=-2)
    t.add_field(BoundText(id="name", x=50, y=50, width=100, height=20, content="{{firstName}}"))
    (placed,) = PdfExporter().layout(t, {"firstName": "Ada"})
    assert placed.text == "Ada"
    assert (placed.box.x, placed.box.y, placed.box.w, placed.box.h) == (28.0, 23.0, 50.0, 10.0)
    assert placed.font_size_pt == pytest.approx(6.0)


def test_layout_is_deterministic(full_template):
    exporter = PdfExporter()
    record = {"firstName": "Ada"}
    assert exporter.layout(full_template, record) == exporter.layout(full_template, record)


def test_layout_blanks_unresolved_tokens():
    t = Template()
    t.add_field(BoundText(content="Level {{badgeColor}}"))
    (placed,) = PdfExporter().layout(t, {})
    assert placed.text == "Level "


def test_layout_keeps_z_order(full_template):
    ids = [p.id for p in PdfExporter().layout(full_template, {})]
    assert ids == [f.id for f in full_template.fields]


def test_export_reads_only_clean_background(full_template):
    full_template.set_preview_composite(b"composited raster that must not be read")
    with patch.object(export_module, "decode_image", wraps=decode_image) as spy:
        PdfExporter().export(full_template, {"firstName": "Ada"})
    decoded = [c.args[0] for c in spy.call_args_list]
    assert full_template.background.clean in decoded
    assert full_template.background.composited not in decoded


def test_bad_image_draws_placeholder_and_continues(caplog):
    t = Template()
    t.add_field(ImageField(id="broken", x=10, y=10, width=50, height=50, data=b"definitely not a png"))
    t.add_field(BoundText(content="after"))
    with caplog.at_level(logging.WARNING, logger="badgeforge.canvas.export"):
        data = PdfExporter().export(t, {})
    assert data.startswith(b"%PDF")
    assert "broken" in caplog.text


def test_rotated_and_aligned_text_exports():
    t = Template()
    t.add_field(BoundText(content="Upside", x=100, y=100, width=200, height=40))
    t.update_field(t.fields[0].id, rotation=180, align="right", bold=True)
    assert PdfExporter().export(t, {}).startswith(b"%PDF")


def test_render_to_file(tmp_path, full_template):
    out = PdfExporter().render_to_file(tmp_path / "badge.pdf", full_template, {"firstName": "Ada"})
    assert out.read_bytes().startswith(b"%PDF")


def test_batch_has_one_page_per_record(full_template):
    records = [{"firstName": n} for n in ("Ada", "Grace", "Alan")]
    data = PDFCombiner().export_batch(full_template, records)
    assert len(_pages(data)) == 3


def test_batch_without_records_fails(full_template):
    with pytest.raises(ValueError):
        PDFCombiner().export_batch(full_template, [])


def test_combine_skips_unreadable_documents(full_template):
    good = PdfExporter().export(full_template, {})
    data = combine_documents([good, b"not a pdf", good], title="Event")
    assert len(_pages(data)) == 2


def test_text_uses_preview_font_resolution():
    t = Template()
    t.add_field(BoundText(content="Hello", x=10, y=10, width=200, height=30,
                          style=FieldStyle(font_family="Brand Sans")))
    with patch.object(export_module, "truetype_for", wraps=truetype_for) as spy:
        PdfExporter().export(t, {})
    # 12 px design size is 6 pt, rasterized at the embed resolution
    assert spy.call_args_list[0].args == ("Brand Sans", 25, False)


def _largest_rgb_image(data: bytes):
    with pikepdf.Pdf.open(io.BytesIO(data)) as pdf:
        images = [
            pikepdf.PdfImage(obj).as_pil_image()
            for obj in pdf.objects
            if isinstance(obj, pikepdf.Stream)
            and obj.get("/Subtype") == pikepdf.Name.Image
            and obj.get("/ColorSpace") == pikepdf.Name.DeviceRGB
        ]
    return max(images, key=lambda im: im.width * im.height)


def test_exported_background_pixels_ignore_preview_overlay(full_template):
    clean = full_template.background.clean
    session = DesignerSession(full_template, snap_to_grid=False)
    session.render_preview()
    composited = Image.open(io.BytesIO(full_template.background.composited)).convert("RGB")
    assert len(composited.getcolors(maxcolors=1 << 16)) > 1

    data = session.export({"firstName": "Ada"})
    assert full_template.background.clean == clean
    bg = _largest_rgb_image(data).convert("RGB")
    assert bg.size == (1200, 1800)
    assert bg.getcolors() == [(1200 * 1800, (0, 0, 255))]
