"""Logging setup for systop.

The terminal belongs to the dashboard, so records go to the Textual devtools
console and, optionally, to a rotating log file.
"""

import logging
from logging.handlers import RotatingFileHandler

from textual.logging import TextualHandler

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "WARNING", log_file: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a log file (5 MB per file, 3 backups).
    """
    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [TextualHandler()]

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
