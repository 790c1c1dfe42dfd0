from .core import App, APP_TITLE
