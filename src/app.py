from PyQt6.QtWidgets import QApplication
import sys
import logging
from logging.handlers import RotatingFileHandler

from main_window import MainWindow
from utils.settings import CONFIG_DIR, load_settings


def _configure_logging(level_name: str = "DEBUG"):
    """Set up logging for the application.

    - Logs to console via basicConfig at the configured level
    - Also writes to a rotating file under the user's .schemanav/logs folder
    """
    level = getattr(logging, str(level_name).upper(), logging.DEBUG)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)-8s %(name)-20s: %(message)s',
        force=True  # Override any existing basicConfig
    )
    # SQLAlchemy's engine logger is very chatty at DEBUG
    logging.getLogger('sqlalchemy').setLevel(logging.WARNING)

    log_dir = CONFIG_DIR / 'logs'
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / 'schemanav.log'
        handler = RotatingFileHandler(str(log_file), maxBytes=5 * 1024 * 1024, backupCount=3, encoding='utf-8')
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)-8s %(name)-20s: %(message)s'))
        logging.getLogger().addHandler(handler)
    except OSError:
        # continue with console logging only
        logging.getLogger(__name__).exception('Failed to configure file logger')


def main():
    settings = load_settings()
    _configure_logging(settings["log_level"])
    app = QApplication(sys.argv)
    window = MainWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
