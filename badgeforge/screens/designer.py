from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import tkinter as tk
from tkinter import ttk, filedialog
from PIL import ImageTk

from badgeforge.core.app import Screen, warn, error, vcmd_float, COLOR_SELECT
from badgeforge.core.state import OUTPUT_PATH, state, save_state
from badgeforge.core.store import TemplateStore
from badgeforge.canvas.catalog import FieldCatalog, HttpFieldSource
from badgeforge.canvas.errors import DuplicateTemplateName, ImageDecodeError, TemplateValidationError
from badgeforge.canvas.images import load_image_async
from badgeforge.canvas.surface import DesignerSession
from badgeforge.canvas.template import Template

logger = logging.getLogger(__name__)

ARROW_STEP = 1
ARROW_STEP_FAST = 10
MOD_CONTROL = 0x0004
MOD_SHIFT = 0x0001
MOD_COMMAND = 0x0008  # macOS Command key shows up as Mod1 in Tk


class DesignerScreen(Screen):
    """Badge template designer: palette and tools around a live preview canvas."""

    def __init__(self, master, app, template: Optional[Template] = None,
                 store: Optional[TemplateStore] = None):
        super().__init__(master, app)
        self.store = store or TemplateStore()
        self.session = DesignerSession(template)
        self.catalog = FieldCatalog()
        self._photo = None
        self._render_pending = False

        self.brand_bar(self)
        body = ttk.Frame(self, style="Screen.TFrame")
        body.pack(expand=True, fill="both")

        self.left_bar = ttk.Frame(body, style="Card.TFrame", padding=8)
        self.left_bar.pack(side="left", fill="y")
        self.right_bar = ttk.Frame(body, style="Card.TFrame", padding=8)
        self.right_bar.pack(side="right", fill="y")

        wrap = ttk.Frame(body, style="Screen.TFrame")
        wrap.pack(side="left", expand=True, fill="both", padx=8, pady=8)
        self.canvas = tk.Canvas(
            wrap,
            width=int(self.session.template.width),
            height=int(self.session.template.height),
            bg="white",
            highlightthickness=1,
            scrollregion=(0, 0, self.session.template.width, self.session.template.height),
        )
        vbar = ttk.Scrollbar(wrap, orient="vertical", command=self.canvas.yview)
        self.canvas.configure(yscrollcommand=vbar.set)
        vbar.pack(side="right", fill="y")
        self.canvas.pack(side="left", anchor="n")

        self._build_left()
        self._build_right()
        self._build_context_menu()
        self._bind_events()

        self.session.subscribe(lambda _s: self.request_render())
        self._refresh_templates()
        self._load_bindable_fields()
        self.request_render()

    # --- Layout ------------------------------------------------------------------------
    def _section(self, parent, title: str) -> ttk.Frame:
        ttk.Label(parent, text=title, style="H2.TLabel").pack(anchor="w", pady=(10, 2))
        frame = ttk.Frame(parent, style="Card.TFrame")
        frame.pack(fill="x")
        return frame

    def _button(self, parent, text: str, command, side: str = "top"):
        b = ttk.Button(parent, text=text, command=command)
        b.pack(side=side, fill="x", pady=1, padx=1, expand=(side != "top"))
        return b

    def _build_left(self):
        sec = self._section(self.left_bar, "Template")
        self.name_var = tk.StringVar(value=self.session.template.name)
        self.name_entry = ttk.Entry(sec, textvariable=self.name_var, width=28)
        self.name_entry.pack(fill="x", pady=2)
        self.template_var = tk.StringVar()
        self.template_combo = ttk.Combobox(sec, textvariable=self.template_var, state="readonly", width=26)
        self.template_combo.pack(fill="x", pady=2)
        self.template_combo.bind("<<ComboboxSelected>>", self._on_open_template)
        row = ttk.Frame(sec, style="Card.TFrame"); row.pack(fill="x")
        self._button(row, "New", self.on_new, side="left")
        self._button(row, "Save", self.on_save, side="left")
        self._button(row, "Delete", self.on_delete_template, side="left")

        sec = self._section(self.left_bar, "Fields")
        self.fields_list = tk.Listbox(sec, height=14, exportselection=False)
        self.fields_list.pack(fill="x")
        self.fields_list.bind("<Double-Button-1>", lambda _e: self.on_add_bound_field())
        self._button(sec, "Add field", self.on_add_bound_field)
        self._button(sec, "Add custom text", lambda: self.session.add_custom_text())
        self._button(sec, "Add checkbox", lambda: self.session.add_checkbox("Checkbox"))
        self._button(sec, "Add image...", self.on_add_image)
        self._button(sec, "Clear all fields", self.session.clear_fields)

        sec = self._section(self.left_bar, "Background")
        row = ttk.Frame(sec, style="Card.TFrame"); row.pack(fill="x")
        self._button(row, "Upload...", self.on_set_background, side="left")
        self._button(row, "Remove", self.session.clear_background, side="left")

        sec = self._section(self.left_bar, "Export")
        self._button(sec, "Export PDF...", self.on_export)
        self._button(sec, "Export all records...", self.on_export_batch)
        self._button(sec, "Export test page...", self.on_export_test_page)

    def _build_right(self):
        sec = self._section(self.right_bar, "Arrange")
        grid = ttk.Frame(sec, style="Card.TFrame"); grid.pack(fill="x")
        for i, mode in enumerate(("left", "center", "right", "top", "middle", "bottom")):
            ttk.Button(grid, text=f"Align {mode}", width=12,
                       command=lambda m=mode: self.session.align(m)).grid(row=i // 2, column=i % 2, padx=1, pady=1)
        self._button(sec, "Distribute horizontally", self.session.distribute_horizontal)
        self._button(sec, "Distribute vertically", self.session.distribute_vertical)
        row = ttk.Frame(sec, style="Card.TFrame"); row.pack(fill="x")
        for label, direction in (("Center H", "horizontal"), ("Center V", "vertical"), ("Center", "both")):
            self._button(row, label, lambda d=direction: self.session.center_on_canvas(d), side="left")

        sec = self._section(self.right_bar, "Text")
        row = ttk.Frame(sec, style="Card.TFrame"); row.pack(fill="x")
        for align in ("left", "center", "right"):
            self._button(row, align.capitalize(), lambda a=align: self.session.set_text_align(a), side="left")
        row = ttk.Frame(sec, style="Card.TFrame"); row.pack(fill="x")
        self._button(row, "Bold", self.session.toggle_bold, side="left")
        self._button(row, "Rotate 180", self.session.rotate_selected, side="left")
        self.font_size_var = tk.StringVar(value="12")
        self.font_family_var = tk.StringVar(value=state.default_font_family)
        self._chip(sec, "Size:", self.font_size_var, self._on_font_size)
        self._chip(sec, "Font:", self.font_family_var, self._on_font_family, numeric=False)

        sec = self._section(self.right_bar, "Print offset (pt)")
        self.offset_x_var = tk.StringVar(value=str(self.session.template.print_offset_x))
        self.offset_y_var = tk.StringVar(value=str(self.session.template.print_offset_y))
        self._chip(sec, "X:", self.offset_x_var, self._on_offset)
        self._chip(sec, "Y:", self.offset_y_var, self._on_offset)
        self._button(sec, "Reset offset", self._on_reset_offset)

        sec = self._section(self.right_bar, "Grid")
        self.snap_var = tk.BooleanVar(value=self.session.snap_to_grid)
        self.grid_var = tk.StringVar(value=str(self.session.grid_size))
        ttk.Checkbutton(sec, text="Snap to grid", variable=self.snap_var, command=self._on_snap).pack(anchor="w")
        self._chip(sec, "Size:", self.grid_var, self._on_snap)

        sec = self._section(self.right_bar, "Preview")
        self.preview_var = tk.BooleanVar(value=self.session.preview_mode)
        ttk.Checkbutton(sec, text="Show record data", variable=self.preview_var,
                        command=lambda: self.session.set_preview_mode(self.preview_var.get())).pack(anchor="w")
        row = ttk.Frame(sec, style="Card.TFrame"); row.pack(fill="x")
        self._button(row, "<", self.session.previous_record, side="left")
        self.record_label = ttk.Label(row, text="", style="Label.TLabel", width=8, anchor="center")
        self.record_label.pack(side="left")
        self._button(row, ">", self.session.next_record, side="left")
        self._button(sec, "Load records...", self.on_load_records)

        sec = self._section(self.right_bar, "History")
        row = ttk.Frame(sec, style="Card.TFrame"); row.pack(fill="x")
        self._button(row, "Undo", self.session.undo, side="left")
        self._button(row, "Redo", self.session.redo, side="left")

    def _chip(self, parent, label, var, on_commit, numeric: bool = True):
        row = ttk.Frame(parent, style="Card.TFrame"); row.pack(fill="x", pady=1)
        ttk.Label(row, text=label, style="Label.TLabel", width=6).pack(side="left")
        kw = {"validate": "key", "validatecommand": (vcmd_float(self), "%P")} if numeric else {}
        e = ttk.Entry(row, textvariable=var, width=12, **kw)
        e.pack(side="left", fill="x", expand=True)
        e.bind("<Return>", lambda _e: on_commit())
        e.bind("<FocusOut>", lambda _e: on_commit())
        return e

    def _build_context_menu(self):
        self.menu = tk.Menu(self, tearoff=0)
        self.menu.add_command(label="Duplicate", command=self.session.duplicate_selected)
        self.menu.add_command(label="Delete", command=self.session.delete_selected)
        self.menu.add_separator()
        self.menu.add_command(label="Bring forward", command=lambda: self.session.nudge_z(1))
        self.menu.add_command(label="Send backward", command=lambda: self.session.nudge_z(-1))
        self.menu.add_command(label="Bring to front", command=self.session.bring_to_front)
        self.menu.add_command(label="Send to back", command=self.session.send_to_back)
        self.menu.add_separator()
        self.menu.add_command(label="Rotate 180", command=self.session.rotate_selected)

    def _bind_events(self):
        c = self.canvas
        c.bind("<ButtonPress-1>", self.on_click)
        c.bind("<B1-Motion>", self.on_drag)
        c.bind("<ButtonRelease-1>", self.on_release)
        c.bind("<Button-3>", self.maybe_show_context_menu)
        c.bind("<Button-2>", self.maybe_show_context_menu)
        for seq in ("<Control-z>", "<Command-z>"):
            self._bind_key(c, seq, lambda _e: self.session.undo())
        for seq in ("<Control-y>", "<Control-Z>", "<Command-Z>"):
            self._bind_key(c, seq, lambda _e: self.session.redo())
        c.bind("<Control-d>", lambda _e: self.session.duplicate_selected())
        c.bind("<Delete>", lambda _e: self.session.delete_selected())
        c.bind("<BackSpace>", lambda _e: self.session.delete_selected())
        c.bind("<Escape>", lambda _e: self.session.clear_selection())
        for key, (dx, dy) in {"Left": (-1, 0), "Right": (1, 0), "Up": (0, -1), "Down": (0, 1)}.items():
            c.bind(f"<{key}>", lambda e, d=(dx, dy): self.on_arrow(e, *d))

    @staticmethod
    def _bind_key(widget, seq, handler):
        try:
            widget.bind(seq, handler)
        except tk.TclError:
            # <Command-...> only exists on macOS builds of Tk
            logger.debug("Key sequence %s not supported here", seq)

    # --- Rendering -------------------------------------------------------------------------
    def request_render(self):
        if not self._render_pending:
            self._render_pending = True
            self.after_idle(self._render)

    def _render(self):
        self._render_pending = False
        s = self.session
        img = s.render_preview()
        self._photo = ImageTk.PhotoImage(img)
        self.canvas.delete("all")
        self.canvas.create_image(0, 0, anchor="nw", image=self._photo)
        for f in s.selected_fields:
            x0, y0, x1, y1 = f.bounds()
            width = 2 if s.primary is f else 1
            self.canvas.create_rectangle(x0, y0, x1, y1, outline=COLOR_SELECT, dash=(4, 2), width=width)
        self.record_label.configure(text=f"{s.record_index + 1} / {len(s.preview_records)}")
        p = s.primary
        if p is not None:
            self.font_size_var.set(f"{p.style.font_size:g}")
            self.font_family_var.set(p.style.font_family)

    # --- Pointer / keys ----------------------------------------------------------------------
    def on_click(self, e):
        self.canvas.focus_set()
        toggle = bool(e.state & (MOD_CONTROL | MOD_COMMAND))
        self.session.press(self.canvas.canvasx(e.x), self.canvas.canvasy(e.y), toggle=toggle)

    def on_drag(self, e):
        self.session.drag(self.canvas.canvasx(e.x), self.canvas.canvasy(e.y))

    def on_release(self, _e):
        self.session.release()

    def on_arrow(self, e, dx, dy):
        step = ARROW_STEP_FAST if e.state & MOD_SHIFT else ARROW_STEP
        self.session.nudge(dx * step, dy * step)
        return "break"

    def maybe_show_context_menu(self, e):
        hit = self.session.hit_test(self.canvas.canvasx(e.x), self.canvas.canvasy(e.y))
        if hit is None:
            return
        if not self.session.is_selected(hit.id):
            self.session.select(hit.id)
        try:
            self.menu.tk_popup(e.x_root, e.y_root)
        finally:
            self.menu.grab_release()

    # --- Property edits --------------------------------------------------------------------------
    @staticmethod
    def _float(var: tk.StringVar, default: float = 0.0) -> float:
        try:
            return float(var.get())
        except ValueError:
            return default

    def _on_font_size(self):
        size = self._float(self.font_size_var)
        if size > 0:
            self.session.set_font_size(size)

    def _on_font_family(self):
        family = self.font_family_var.get().strip()
        if family:
            self.session.set_font_family(family)

    def _on_offset(self):
        self.session.set_print_offset(self._float(self.offset_x_var), self._float(self.offset_y_var))

    def _on_reset_offset(self):
        self.offset_x_var.set("0")
        self.offset_y_var.set("0")
        self.session.reset_print_offset()

    def _on_snap(self):
        grid = int(self._float(self.grid_var, self.session.grid_size)) or self.session.grid_size
        self.session.set_snap(self.snap_var.get(), grid)
        state.snap_to_grid = self.session.snap_to_grid
        state.grid_size = self.session.grid_size

    # --- Fields and assets --------------------------------------------------------------------------
    def _load_bindable_fields(self):
        self._populate_fields(self.catalog.fields)
        if not state.event_id:
            return
        self.catalog.refresh_async(
            HttpFieldSource.from_state(),
            schedule=lambda cb: self.after(0, cb),
            on_done=self._populate_fields,
        )

    def _populate_fields(self, _fields):
        self.fields_list.delete(0, "end")
        for _name, label in self.catalog.options():
            self.fields_list.insert("end", label)

    def on_add_bound_field(self):
        sel = self.fields_list.curselection()
        if not sel:
            warn("Select a field to add first.")
            return
        name, _label = self.catalog.options()[sel[0]]
        self.session.add_bound_field(name)

    def _schedule(self, cb):
        self.after(0, cb)

    def _pick_image(self, title: str) -> str:
        return filedialog.askopenfilename(
            title=title,
            filetypes=[("Images", "*.png *.jpg *.jpeg *.gif *.bmp *.webp"), ("All files", "*.*")],
        )

    def on_add_image(self):
        path = self._pick_image("Choose image")
        if not path:
            return

        def _done(data: bytes):
            try:
                self.session.add_image(data)
            except ImageDecodeError as ex:
                error(f"Could not read image:\n{ex}")

        load_image_async(path, self._schedule, _done, lambda ex: error(f"Could not read image:\n{ex}"))

    def on_set_background(self):
        path = self._pick_image("Choose background")
        if not path:
            return

        def _done(data: bytes):
            try:
                self.session.set_background(data)
            except ImageDecodeError as ex:
                error(f"Could not read background:\n{ex}")

        load_image_async(path, self._schedule, _done, lambda ex: error(f"Could not read background:\n{ex}"))

    def on_load_records(self):
        path = filedialog.askopenfilename(title="Preview records", filetypes=[("JSON", "*.json")])
        if not path:
            return
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as ex:
            logger.exception("Failed to read records %s", path)
            error(f"Could not read records:\n{ex}")
            return
        records = [r for r in (data if isinstance(data, list) else [data]) if isinstance(r, dict)]
        self.session.set_preview_records(records)

    # --- Templates ------------------------------------------------------------------------------------
    def _refresh_templates(self):
        self._summaries = self.store.summaries()
        self.template_combo.configure(values=[s["name"] for s in self._summaries])

    def _on_open_template(self, _e=None):
        idx = self.template_combo.current()
        if idx < 0:
            return
        template_id = self._summaries[idx]["id"]
        try:
            template = self.store.load(template_id)
        except (TemplateValidationError, KeyError, OSError, ValueError) as ex:
            logger.exception("Failed to open template %s", template_id)
            error(f"Could not open template:\n{ex}")
            return
        self._show_template(template)
        state.last_template_id = template.id

    def _show_template(self, template: Template):
        self.session.load_template(template)
        self.name_var.set(template.name)
        self.offset_x_var.set(f"{template.print_offset_x:g}")
        self.offset_y_var.set(f"{template.print_offset_y:g}")

    def on_new(self):
        self.template_var.set("")
        self._show_template(Template())

    def on_save(self):
        t = self.session.template
        t.name = self.name_var.get()
        try:
            self.store.save(t)
        except DuplicateTemplateName as ex:
            warn(f"{ex}. Choose a different name.")
            self.name_entry.focus_set()
            self.name_entry.select_range(0, "end")
            return
        except TemplateValidationError as ex:
            error("Template is not valid:\n" + "\n".join(ex.violations))
            return
        self.name_var.set(t.name)
        state.last_template_id = t.id
        save_state()
        self._refresh_templates()
        self.template_var.set(t.name)

    def on_delete_template(self):
        t = self.session.template
        if t.id is None:
            return
        self.store.delete(t.id)
        self._refresh_templates()
        self.on_new()

    # --- Export --------------------------------------------------------------------------------------
    def _ask_pdf_path(self, stem: str) -> str:
        return filedialog.asksaveasfilename(
            defaultextension=".pdf",
            initialdir=str(OUTPUT_PATH),
            initialfile=f"{stem}.pdf",
            filetypes=[("PDF", "*.pdf")],
        )

    def on_export(self):
        path = self._ask_pdf_path(self.session.template.name or "badge")
        if not path:
            return
        self.session.export_to_file(path)

    def on_export_batch(self):
        path = self._ask_pdf_path(f"{self.session.template.name or 'badges'}_all")
        if not path:
            return
        self.session.export_batch_to_file(path)

    def on_export_test_page(self):
        path = self._ask_pdf_path(f"{self.session.template.name or 'badge'}_test")
        if not path:
            return
        self.session.export_test_page(path)
