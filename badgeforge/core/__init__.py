from .state import (
    APP_TITLE, CANVAS_WIDTH_PX, CANVAS_HEIGHT_PX, DOC_WIDTH_PT, DOC_HEIGHT_PT,
    DEFAULT_GRID_SIZE, MIN_FIELD_SIZE, TEMPLATES_PATH, OUTPUT_PATH, LOGS_PATH,
    AppState, save_state, load_state,
)
from .app import App, Screen, warn, error, COLOR_BG_SCREEN, COLOR_BG_DARK, COLOR_BG_LIGHT, COLOR_TEXT, COLOR_SELECT
from .store import TemplateStore
