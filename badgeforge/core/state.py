import json
import logging
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, asdict


APP_TITLE = "BadgeForge"

# Canonical design canvas: 4x6 in at 144 px/in
CANVAS_WIDTH_PX = 576
CANVAS_HEIGHT_PX = 864

# Target document page: 4x6 in at 72 pt/in
DOC_WIDTH_PT = 288.0
DOC_HEIGHT_PT = 432.0

DEFAULT_GRID_SIZE = 5
MIN_FIELD_SIZE = 4
HISTORY_LIMIT = 200

DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_FONT_SIZE = 12
DEFAULT_COLOR = "#000000"

INTERNAL_PATH = Path.cwd() / "_internal"
INTERNAL_PATH.mkdir(exist_ok=True)

FONTS_PATH     = INTERNAL_PATH / "fonts"
TEMPLATES_PATH = INTERNAL_PATH / "templates"
TEMPLATES_PATH.mkdir(exist_ok=True)
LOGS_PATH      = INTERNAL_PATH / "logs"
LOGS_PATH.mkdir(exist_ok=True)
OUTPUT_PATH    = Path.cwd() / "outputs"
OUTPUT_PATH.mkdir(exist_ok=True)

STATE_PATH = INTERNAL_PATH / "state.json"

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    # Designer
    snap_to_grid: bool = True
    grid_size: int = DEFAULT_GRID_SIZE
    default_font_family: str = DEFAULT_FONT_FAMILY
    last_template_id: Optional[str] = None

    # Bindable field discovery (event CSV headers)
    server_url: str = "http://localhost:3000"
    event_id: str = ""
    request_timeout: float = 5.0


state = AppState()


def save_state(path: str | Path = STATE_PATH) -> None:
    p = Path(path)
    with p.open("w", encoding="utf-8") as f:
        json.dump(asdict(state), f, ensure_ascii=False, indent=2)


def load_state(path: str | Path = STATE_PATH) -> bool:
    p = Path(path)
    if not p.exists():
        return False
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.exception("Failed to read state from %s", p)
        return False
    for k, v in data.items():
        if hasattr(state, k):
            setattr(state, k, v)
    return True
