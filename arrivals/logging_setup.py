"""
Logging configuration for the arrivals service
"""

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
APP_LOGGERS = ("arrivals", "web", "__main__")


def setup_logging(log_file: Path | None = None, level: int = logging.INFO):
    """Setup console (and optional file) logging with framework logs suppressed to WARNING"""
    # Suppress framework logs
    logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("engineio").setLevel(logging.WARNING)
    logging.getLogger("socketio").setLevel(logging.WARNING)
    logging.getLogger("playwright").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for name in APP_LOGGERS:
        app_logger = logging.getLogger(name)
        app_logger.setLevel(level)
        for handler in handlers:
            app_logger.addHandler(handler)
