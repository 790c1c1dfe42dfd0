import io
import sys
from pathlib import Path

import pytest
from PIL import Image

sys.path.insert(0, str(Path(__file__).parent.parent))

from badgeforge.canvas.object import BoundText, Checkbox, ImageField, FieldStyle
from badgeforge.canvas.surface import DesignerSession
from badgeforge.canvas.template import Template
from badgeforge.core.store import TemplateStore


def make_png(size=(40, 30), color=(255, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def png_factory():
    return make_png


@pytest.fixture
def template():
    return Template(name="Badge")


@pytest.fixture
def full_template(png_bytes):
    t = Template(name="Full")
    t.set_background(make_png((576, 864), (0, 0, 255, 255)))
    t.add_field(BoundText(id="field_name", x=50, y=50, width=100, height=20, content="{{firstName}}"))
    t.add_field(BoundText(id="field_literal", x=50, y=100, width=200, height=30, content="VISITOR",
                          style=FieldStyle(bold=True, align="center", font_size=18)))
    t.add_field(Checkbox(id="field_vip", x=50, y=200, width=120, height=20, label="VIP", checked=True))
    t.add_field(ImageField(id="field_logo", x=300, y=600, width=80, height=60, data=png_bytes))
    return t


@pytest.fixture
def session(template):
    return DesignerSession(template, snap_to_grid=False)


@pytest.fixture
def store(tmp_path):
    return TemplateStore(tmp_path / "templates")
