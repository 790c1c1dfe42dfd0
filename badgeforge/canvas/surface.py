from __future__ import annotations

import copy
import logging
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from PIL import Image

from badgeforge.core.state import HISTORY_LIMIT, state
from badgeforge.canvas.catalog import SAMPLE_RECORD, TEST_PRINT_RECORD
from badgeforge.canvas.export import PdfExporter
from badgeforge.canvas.history import HistoryManager
from badgeforge.canvas.images import image_size
from badgeforge.canvas.object import (
    ALIGNMENTS, BoundText, Checkbox, Field, FieldStyle, ImageField, new_field_id,
)
from badgeforge.canvas.pdf_combiner import PDFCombiner
from badgeforge.canvas.placeholders import make_token
from badgeforge.canvas.preview import PreviewRenderer
from badgeforge.canvas.template import Template

logger = logging.getLogger(__name__)

ALIGN_MODES = ("left", "center", "right", "top", "middle", "bottom")
CENTER_DIRECTIONS = ("horizontal", "vertical", "both")

IMAGE_MAX_SIDE = 150.0
DUPLICATE_OFFSET = 10.0

_STYLE_KEYS = {f.name for f in dataclasses.fields(FieldStyle)}

Listener = Callable[["DesignerSession"], Any]


@dataclass
class DragState:
    start_x: float
    start_y: float
    primary: str
    origins: dict[str, tuple[float, float]] = field(default_factory=dict)
    pushed: bool = False
    moved: bool = False


class DesignerSession:
    """One operator's editing session over a single template.

    Every mutating gesture goes through here so that it records exactly one
    history step, and only when the gesture actually changed something.
    Views subscribe and re-render from ``template`` on each notification.
    Selection is a list of field ids; the first one is the primary field.
    """

    def __init__(
        self,
        template: Optional[Template] = None,
        snap_to_grid: Optional[bool] = None,
        grid_size: Optional[int] = None,
        history_limit: Optional[int] = HISTORY_LIMIT,
        exporter: Optional[PdfExporter] = None,
    ) -> None:
        self.template = template or Template()
        self.history_limit = history_limit
        self.history = HistoryManager(self.template, limit=history_limit)
        self.selection: list[str] = []
        self.snap_to_grid = state.snap_to_grid if snap_to_grid is None else bool(snap_to_grid)
        self.grid_size = int(grid_size or state.grid_size)
        self.exporter = exporter or PdfExporter()

        self.preview_records: list[Mapping[str, Any]] = [SAMPLE_RECORD]
        self.record_index = 0
        self.preview_mode = True

        self._drag: Optional[DragState] = None
        self._listeners: list[Listener] = []

    # --- Listeners -----------------------------------------------------------------
    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)
        return _unsubscribe

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb(self)

    # --- Template lifecycle ----------------------------------------------------------
    def load_template(self, template: Template) -> None:
        self.template = template
        self.history = HistoryManager(template, limit=self.history_limit)
        self.selection = []
        self._drag = None
        self._notify()

    # --- Selection -------------------------------------------------------------------
    @property
    def primary(self) -> Optional[Field]:
        return self.template.get_field(self.selection[0]) if self.selection else None

    @property
    def selected_fields(self) -> list[Field]:
        out = []
        for fid in self.selection:
            f = self.template.get_field(fid)
            if f is not None:
                out.append(f)
        return out

    def is_selected(self, field_id: str) -> bool:
        return field_id in self.selection

    def select(self, field_id: Optional[str]) -> None:
        self._drag = None
        if field_id is None or self.template.get_field(field_id) is None:
            self.selection = []
        else:
            self.selection = [field_id]
        self._notify()

    def toggle_selection(self, field_id: str) -> None:
        """Ctrl/Cmd-click: add or remove one field from the selection."""
        self._drag = None
        if field_id in self.selection:
            self.selection.remove(field_id)
        elif self.template.get_field(field_id) is not None:
            self.selection.append(field_id)
        self._notify()

    def select_all(self) -> None:
        self._drag = None
        self.selection = [f.id for f in self.template.fields]
        self._notify()

    def clear_selection(self) -> None:
        self._drag = None
        if self.selection:
            self.selection = []
            self._notify()

    def _resolve_selection(self) -> None:
        self.selection = [fid for fid in self.selection if self.template.get_field(fid) is not None]

    # --- Geometry helpers --------------------------------------------------------------
    def snap(self, value: float) -> float:
        if not self.snap_to_grid or self.grid_size <= 0:
            return value
        return round(value / self.grid_size) * self.grid_size

    def set_snap(self, enabled: bool, grid_size: Optional[int] = None) -> None:
        self.snap_to_grid = bool(enabled)
        if grid_size:
            self.grid_size = max(1, int(grid_size))
        self._notify()

    def hit_test(self, x: float, y: float) -> Optional[Field]:
        """Topmost field whose drawn bounds contain the point (edges inclusive)."""
        for f in reversed(self.template.fields):
            if f.contains(x, y):
                return f
        return None

    def _next_position(self, width: float, height: float) -> tuple[float, float]:
        # New fields stack in a 3-wide staircase around the canvas center
        n = len(self.template.fields)
        x = self.template.width / 2.0 - width / 2.0 + (n % 3) * 10
        y = self.template.height / 2.0 - height / 2.0 + (n // 3) * 10
        return (x, y)

    def _push(self) -> None:
        # An edit outside the drag gesture ends that gesture
        self._drag = None
        self.history.push()

    def _apply_positions(self, positions: Mapping[str, tuple[float, float]]) -> bool:
        """Push once and move fields, unless every target equals the current spot."""
        changes = {}
        for fid, (x, y) in positions.items():
            f = self.template.get_field(fid)
            if f is not None and (f.x, f.y) != (x, y):
                changes[fid] = (x, y)
        if not changes:
            return False
        self._push()
        for fid, (x, y) in changes.items():
            self.template.update_field(fid, x=x, y=y)
        self._notify()
        return True

    # --- Pointer gestures ----------------------------------------------------------------
    def press(self, x: float, y: float, toggle: bool = False) -> Optional[Field]:
        hit = self.hit_test(x, y)
        self._drag = None
        if toggle:
            if hit is not None:
                self.toggle_selection(hit.id)
            return hit
        if hit is None:
            self.selection = []
            self._notify()
            return None
        if hit.id in self.selection:
            self.selection.remove(hit.id)
            self.selection.insert(0, hit.id)
        else:
            self.selection = [hit.id]
        self._drag = DragState(
            start_x=x,
            start_y=y,
            primary=hit.id,
            origins={f.id: (f.x, f.y) for f in self.selected_fields},
        )
        self._notify()
        return hit

    def drag(self, x: float, y: float) -> bool:
        d = self._drag
        if d is None:
            return False
        if self.template.get_field(d.primary) is None:
            self._drag = None
            return False
        px, py = d.origins[d.primary]
        dx = self.snap(px + (x - d.start_x)) - px
        dy = self.snap(py + (y - d.start_y)) - py
        changes = {}
        for fid, (ox, oy) in d.origins.items():
            f = self.template.get_field(fid)
            if f is not None and (f.x, f.y) != (ox + dx, oy + dy):
                changes[fid] = (ox + dx, oy + dy)
        if not changes:
            return False
        if not d.pushed:
            # One history step for the whole drag
            self.history.push()
            d.pushed = True
        for fid, (nx, ny) in changes.items():
            self.template.update_field(fid, x=nx, y=ny)
        d.moved = True
        self._notify()
        return True

    def release(self) -> bool:
        moved = bool(self._drag and self._drag.moved)
        self._drag = None
        return moved

    # --- Adding fields -------------------------------------------------------------------
    def _add(self, f: Field) -> Field:
        self._push()
        self.template.add_field(f)
        self.selection = [f.id]
        self._notify()
        return f

    def _new_style(self, **style: Any) -> FieldStyle:
        style.setdefault("font_family", state.default_font_family)
        return FieldStyle(**style)

    def add_bound_field(self, name: str, **style: Any) -> Field:
        x, y = self._next_position(100, 20)
        return self._add(BoundText(x=x, y=y, content=make_token(name), style=self._new_style(**style)))

    def add_custom_text(self, text: str = "Custom Text", **style: Any) -> Field:
        x, y = self._next_position(100, 20)
        return self._add(BoundText(x=x, y=y, content=str(text), style=self._new_style(**style)))

    def add_checkbox(self, label: str = "", checked: bool = False, **style: Any) -> Field:
        x, y = self._next_position(120, 20)
        return self._add(Checkbox(x=x, y=y, width=120, height=20, label=label,
                                  checked=checked, style=self._new_style(**style)))

    def add_image(self, data: bytes) -> Field:
        """Add an image field sized to the picture, longest side capped.

        Raises ImageDecodeError before touching the template if ``data`` is
        not an image.
        """
        iw, ih = image_size(data)
        k = min(1.0, IMAGE_MAX_SIDE / max(iw, ih))
        w, h = iw * k, ih * k
        x, y = self._next_position(w, h)
        return self._add(ImageField(x=x, y=y, width=w, height=h, data=bytes(data)))

    # --- Editing the selection ------------------------------------------------------------
    def delete_selected(self) -> bool:
        ids = [f.id for f in self.selected_fields]
        if not ids:
            return False
        self._push()
        for fid in ids:
            self.template.remove_field(fid)
        self.selection = []
        self._notify()
        return True

    def duplicate_selected(self) -> list[Field]:
        originals = self.selected_fields
        if not originals:
            return []
        self._push()
        copies = []
        for f in originals:
            dup = dataclasses.replace(
                copy.deepcopy(f), id=new_field_id(),
                x=f.x + DUPLICATE_OFFSET, y=f.y + DUPLICATE_OFFSET,
            )
            copies.append(self.template.add_field(dup))
        self.selection = [c.id for c in copies]
        self._notify()
        return copies

    def _changed(self, f: Field, changes: Mapping[str, Any]) -> dict[str, Any]:
        out = {}
        for k, v in changes.items():
            if k in _STYLE_KEYS:
                if getattr(f.style, k) != v:
                    out[k] = v
            elif k != "id" and hasattr(f, k):
                if getattr(f, k) != v:
                    out[k] = v
        return out

    def update_selected(self, **changes: Any) -> bool:
        """Apply property changes (geometry, content or style keys) to the selection."""
        patches = {}
        for f in self.selected_fields:
            p = self._changed(f, changes)
            if p:
                patches[f.id] = p
        if not patches:
            return False
        self._push()
        for fid, p in patches.items():
            self.template.update_field(fid, **p)
        self._notify()
        return True

    def set_text_align(self, align: str) -> bool:
        if align not in ALIGNMENTS:
            raise ValueError(f"Unknown alignment {align!r}")
        return self.update_selected(align=align)

    def toggle_bold(self) -> bool:
        p = self.primary
        if p is None:
            return False
        return self.update_selected(bold=not p.style.bold)

    def set_font_size(self, size: float) -> bool:
        return self.update_selected(font_size=max(1.0, float(size)))

    def set_font_family(self, family: str) -> bool:
        return self.update_selected(font_family=str(family))

    def rotate_selected(self) -> bool:
        """Flip the selection upside down (0 <-> 180 degrees)."""
        fields = self.selected_fields
        if not fields:
            return False
        self._push()
        for f in fields:
            self.template.update_field(f.id, rotation=(f.style.rotation + 180) % 360)
        self._notify()
        return True

    def nudge(self, dx: float, dy: float) -> bool:
        if not dx and not dy:
            return False
        return self._apply_positions({f.id: (f.x + dx, f.y + dy) for f in self.selected_fields})

    def nudge_z(self, delta: int) -> bool:
        """Move the primary field ``delta`` steps up (+) or down (-) the z-order."""
        p = self.primary
        if p is None:
            return False
        i = self.template.index_of(p.id)
        target = max(0, min(i + int(delta), len(self.template.fields) - 1))
        if target == i:
            return False
        self._push()
        self.template.move_field(p.id, target)
        self._notify()
        return True

    def bring_to_front(self) -> bool:
        return self.nudge_z(len(self.template.fields))

    def send_to_back(self) -> bool:
        return self.nudge_z(-len(self.template.fields))

    def clear_fields(self) -> bool:
        if not self.template.fields:
            return False
        self._push()
        self.template.replace_fields([])
        self.selection = []
        self._notify()
        return True

    # --- Batch geometry ---------------------------------------------------------------------
    def align(self, mode: str) -> bool:
        if mode not in ALIGN_MODES:
            raise ValueError(f"Unknown align mode {mode!r}")
        fields = self.selected_fields
        if len(fields) < 2:
            return False
        if mode == "left":
            tx = min(f.x for f in fields)
            targets = {f.id: (tx, f.y) for f in fields}
        elif mode == "center":
            cx = sum(f.center[0] for f in fields) / len(fields)
            targets = {f.id: (cx - f.width / 2.0, f.y) for f in fields}
        elif mode == "right":
            rx = max(f.right for f in fields)
            targets = {f.id: (rx - f.width, f.y) for f in fields}
        elif mode == "top":
            ty = min(f.y for f in fields)
            targets = {f.id: (f.x, ty) for f in fields}
        elif mode == "middle":
            cy = sum(f.center[1] for f in fields) / len(fields)
            targets = {f.id: (f.x, cy - f.height / 2.0) for f in fields}
        else:
            by = max(f.bottom for f in fields)
            targets = {f.id: (f.x, by - f.height) for f in fields}
        return self._apply_positions(targets)

    def distribute_horizontal(self) -> bool:
        """Equal gaps between neighbours; leftmost and rightmost stay put."""
        fields = sorted(self.selected_fields, key=lambda f: f.x)
        if len(fields) < 3:
            return False
        first, last = fields[0], fields[-1]
        gap = (last.right - first.x - sum(f.width for f in fields)) / (len(fields) - 1)
        targets = {}
        cursor = first.right + gap
        for f in fields[1:-1]:
            targets[f.id] = (cursor, f.y)
            cursor += f.width + gap
        return self._apply_positions(targets)

    def distribute_vertical(self) -> bool:
        fields = sorted(self.selected_fields, key=lambda f: f.y)
        if len(fields) < 3:
            return False
        first, last = fields[0], fields[-1]
        gap = (last.bottom - first.y - sum(f.height for f in fields)) / (len(fields) - 1)
        targets = {}
        cursor = first.bottom + gap
        for f in fields[1:-1]:
            targets[f.id] = (f.x, cursor)
            cursor += f.height + gap
        return self._apply_positions(targets)

    def center_on_canvas(self, direction: str = "both") -> bool:
        if direction not in CENTER_DIRECTIONS:
            raise ValueError(f"Unknown direction {direction!r}")
        p = self.primary
        if p is None:
            return False
        x = (self.template.width - p.width) / 2.0 if direction in ("horizontal", "both") else p.x
        y = (self.template.height - p.height) / 2.0 if direction in ("vertical", "both") else p.y
        return self._apply_positions({p.id: (x, y)})

    # --- History ---------------------------------------------------------------------------
    def undo(self) -> bool:
        self._drag = None
        if not self.history.undo():
            return False
        self._resolve_selection()
        self._notify()
        return True

    def redo(self) -> bool:
        self._drag = None
        if not self.history.redo():
            return False
        self._resolve_selection()
        self._notify()
        return True

    # --- Background and print offset ---------------------------------------------------------
    def set_background(self, data: bytes) -> None:
        """Replace the background. Raises ImageDecodeError for non-image bytes."""
        image_size(data)
        self.template.set_background(data)
        self._notify()

    def clear_background(self) -> None:
        self.template.clear_background()
        self._notify()

    def set_print_offset(self, dx: float, dy: float) -> None:
        self.template.set_print_offset(dx, dy)
        self._notify()

    def reset_print_offset(self) -> None:
        self.set_print_offset(0.0, 0.0)

    # --- Preview --------------------------------------------------------------------------------
    @property
    def current_record(self) -> Mapping[str, Any]:
        return self.preview_records[self.record_index]

    def set_preview_records(self, records: Iterable[Mapping[str, Any]]) -> None:
        self.preview_records = list(records) or [SAMPLE_RECORD]
        self.record_index = 0
        self._notify()

    def next_record(self) -> bool:
        if self.record_index + 1 >= len(self.preview_records):
            return False
        self.record_index += 1
        self._notify()
        return True

    def previous_record(self) -> bool:
        if self.record_index <= 0:
            return False
        self.record_index -= 1
        self._notify()
        return True

    def set_preview_mode(self, enabled: bool) -> None:
        self.preview_mode = bool(enabled)
        self._notify()

    def render_preview(self) -> Image.Image:
        """Raster of the canvas; also refreshes the background's preview composite."""
        record = self.current_record if self.preview_mode else {}
        return PreviewRenderer(preview=True).render_composite(self.template, record)

    # --- Export ---------------------------------------------------------------------------------
    def export(self, record: Optional[Mapping[str, Any]] = None) -> bytes:
        return self.exporter.export(self.template, self.current_record if record is None else record)

    def export_batch(self, records: Optional[Iterable[Mapping[str, Any]]] = None) -> bytes:
        records = self.preview_records if records is None else list(records)
        return PDFCombiner(self.exporter).export_batch(self.template, records)

    def export_to_file(self, path: str | Path, record: Optional[Mapping[str, Any]] = None) -> Path:
        return self.exporter.render_to_file(path, self.template,
                                            self.current_record if record is None else record)

    def export_batch_to_file(self, path: str | Path,
                             records: Optional[Iterable[Mapping[str, Any]]] = None) -> Path:
        records = self.preview_records if records is None else list(records)
        return PDFCombiner(self.exporter).export_batch_to_file(path, self.template, records)

    def export_test_page(self, path: str | Path) -> Path:
        """One page filled with fixed test data, for checking printer alignment."""
        return self.exporter.render_to_file(path, self.template, TEST_PRINT_RECORD)
