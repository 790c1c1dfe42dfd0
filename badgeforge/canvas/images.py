from __future__ import annotations

import io
import base64
import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from PIL import Image, UnidentifiedImageError

from badgeforge.canvas.errors import ImageDecodeError

logger = logging.getLogger(__name__)

_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
)


def sniff_mime(data: bytes) -> str:
    for magic, mime in _SIGNATURES:
        if data.startswith(magic):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


def to_data_url(data: bytes, mime: Optional[str] = None) -> str:
    """Encode raw image bytes as a ``data:`` URL for the stored document."""
    mime = mime or sniff_mime(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def from_data_url(url: str) -> bytes:
    """Decode a base64 ``data:`` URL back to raw bytes.

    Bare base64 (no ``data:`` prefix) is accepted too, since older documents
    stored the payload alone.
    """
    s = str(url or "").strip()
    if s.startswith("data:"):
        header, sep, payload = s.partition(",")
        if not sep or ";base64" not in header:
            raise ImageDecodeError("Only base64 data URLs are supported")
    else:
        payload = s
    try:
        return base64.b64decode(payload, validate=True)
    except (ValueError, TypeError) as e:
        raise ImageDecodeError("Malformed base64 image payload") from e


def decode_image(data: bytes) -> Image.Image:
    """Decode bytes into a fully loaded RGBA Pillow image."""
    if not data:
        raise ImageDecodeError("Empty image data")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(str(e)) from e
    return img.convert("RGBA")


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    return decode_image(data).size


def read_image_file(path: str | Path) -> bytes:
    """Read an image file and make sure it decodes before it is embedded."""
    data = Path(path).read_bytes()
    decode_image(data)
    return data


def load_image_async(
    path: str | Path,
    schedule: Callable[[Callable[[], None]], object],
    on_done: Callable[[bytes], None],
    on_error: Optional[Callable[[Exception], None]] = None,
) -> threading.Thread:
    """Read and verify an image off the UI thread.

    ``schedule`` hands a callback back to the UI thread, typically
    ``lambda cb: widget.after(0, cb)``. Exactly one of ``on_done`` or
    ``on_error`` is scheduled.
    """

    def _worker():
        try:
            data = read_image_file(path)
        except (OSError, ImageDecodeError) as e:
            logger.exception("Failed to load image %s", path)
            if on_error is not None:
                schedule(lambda err=e: on_error(err))
            return
        schedule(lambda: on_done(data))

    t = threading.Thread(target=_worker, daemon=True)
    t.start()
    return t
