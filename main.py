import logging
from badgeforge import App, APP_TITLE
from badgeforge.core.state import LOGS_PATH, load_state
from badgeforge.screens import DesignerScreen

if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format="[%(asctime)s %(name)s] [%(levelname)s] %(message)s")
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.INFO)
    file_handler = logging.FileHandler(LOGS_PATH / "badgeforge.log", encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter("[%(asctime)s %(name)s] [%(levelname)s] %(message)s"))
    logging.getLogger().addHandler(file_handler)

    load_state()
    app = App(title=APP_TITLE)
    app.show_screen(DesignerScreen)
    app.mainloop()
