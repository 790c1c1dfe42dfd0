# App (Tk), ttk styles, base Screen
import tkinter as tk
from tkinter import ttk, messagebox

from .state import APP_TITLE

# Shared UI colors
COLOR_BG_SCREEN = "#878787"
COLOR_BG_DARK = "#474747"
COLOR_BG_LIGHT = "#a6a6a6"
COLOR_TEXT = "#000000"
COLOR_SELECT = "#1e88e5"

UI_SCALE = 1.0
UI_FONT = "Segoe UI"


# Helpers: dialogs
def warn(message: str, title: str = "Warning"):
    messagebox.showwarning(title, message)


def error(message: str, title: str = "Error"):
    messagebox.showerror(title, message)


def scale_px(value: float) -> int:
    """Scale pixel values by UI_SCALE with rounding."""
    return int(round(value * UI_SCALE))


def vcmd_float(root):
    def _is_float(new_value: str) -> bool:
        if new_value in ("", "-"):
            return True
        try:
            float(new_value)
            return True
        except ValueError:
            return False
    return root.register(_is_float)


def apply_styles(root):
    style = ttk.Style(root)
    style.theme_use("clam")
    style.configure("Screen.TFrame", background=COLOR_BG_SCREEN)
    style.configure("Title.TFrame",  background=COLOR_BG_DARK)
    style.configure("Card.TFrame",   background=COLOR_BG_LIGHT)
    style.configure("Brand.TLabel",  background=COLOR_BG_DARK, foreground=COLOR_TEXT, font=(UI_FONT, 18))
    style.configure("H2.TLabel",     background=COLOR_BG_LIGHT, foreground="black", font=(UI_FONT, 12, "bold"))
    style.configure("Label.TLabel",  background=COLOR_BG_LIGHT, foreground="black", font=(UI_FONT, 10))
    style.configure("Muted.TLabel",  background=COLOR_BG_LIGHT, foreground="#333")


class App(tk.Tk):
    def __init__(self, title: str = APP_TITLE, size: str = "1280x960"):
        super().__init__()
        self.title(title)
        self.size = (int(size.split("x")[0]), int(size.split("x")[1]))
        self.geometry(size)
        self.minsize(960, 720)
        self.is_fullscreen = False

        self.configure(bg=COLOR_BG_SCREEN)
        apply_styles(self)
        self.current = None
        self._history: list[type] = []

    def show_screen(self, screen_cls, push_history: bool = True, **kwargs):
        if self.current is not None:
            if push_history:
                self._history.append(self.current.__class__)
            self.current.destroy()
        self.unbind("<Escape>")
        self.current = screen_cls(self, self, **kwargs)
        self.current.pack(expand=True, fill="both")
        return self.current

    def quit_app(self):
        self.destroy()

    def go_back(self):
        if self._history:
            prev = self._history.pop()
            self.show_screen(prev, push_history=False)
        else:
            self.quit_app()

    def toggle_fullscreen(self):
        self.attributes("-fullscreen", not self.is_fullscreen)
        self.is_fullscreen = not self.is_fullscreen


class Screen(ttk.Frame):
    def __init__(self, master: tk.Tk, app: App):
        super().__init__(master)
        self.app = app
        self.configure(style="Screen.TFrame")
        self.app.bind("<F11>", lambda _e: self.app.toggle_fullscreen())

    def brand_bar(self, parent, title_text: str = APP_TITLE):
        bar = tk.Frame(parent, bg=COLOR_BG_DARK, height=scale_px(36))
        bar.pack(fill="x")
        bar.pack_propagate(False)
        tk.Label(
            bar,
            text=title_text,
            bg=COLOR_BG_DARK,
            fg="white",
            font=(UI_FONT, scale_px(16)),
        ).pack(side="left", padx=scale_px(8), pady=0)
        return bar
