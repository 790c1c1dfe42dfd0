from __future__ import annotations

import json
import logging
import functools
from pathlib import Path
from typing import Optional

import arabic_reshaper
from bidi.algorithm import get_display
from PIL import ImageFont

from badgeforge.core.state import FONTS_PATH, DEFAULT_FONT_FAMILY

logger = logging.getLogger(__name__)

FONTS_MAP_PATH = FONTS_PATH / "fonts.json"


def load_fonts_map(path: Path = FONTS_MAP_PATH) -> dict[str, str]:
    """Read ``family -> file stem`` from fonts.json; missing file means empty map."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        logger.exception("Failed to read fonts map %s", path)
        return {}
    return {str(k): str(v) for k, v in data.items()} if isinstance(data, dict) else {}


def font_path_for_family(family: str, bold: bool = False, fonts_dir: Path = FONTS_PATH) -> Optional[str]:
    fonts_map = load_fonts_map(fonts_dir / "fonts.json")
    stem = fonts_map.get(family, family)
    stems = [f"{stem}-Bold", f"{stem} Bold", stem] if bold else [stem]
    for s in stems:
        for ext in (".ttf", ".otf"):
            p = fonts_dir / f"{s}{ext}"
            if p.exists():
                return str(p)
    return None


@functools.lru_cache(maxsize=64)
def truetype_for(family: str, size_px: int, bold: bool = False):
    """Pillow font for the preview; falls back to Pillow's default font."""
    size_px = max(1, int(size_px))
    path = font_path_for_family(family, bold) or font_path_for_family(DEFAULT_FONT_FAMILY, bold)
    if path:
        try:
            return ImageFont.truetype(path, size_px)
        except OSError:
            logger.exception("Failed to load font %s", path)
    return ImageFont.load_default(size=size_px)


def shape_text(text: str) -> str:
    """Reshape and reorder right-to-left runs for left-to-right drawing backends."""
    if not text or text.isascii():
        return text
    return get_display(arabic_reshaper.reshape(text))
