import logging
import sys
from typing import Optional

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

LOG_FORMAT = "%(asctime)s %(levelname)-4s %(name)s : %(message)s"


def setup_logging(level: str = "info", log_file: Optional[str] = None) -> None:
    """Configure the root logger with a stdout handler and an optional log file."""
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root_logger = logging.getLogger()
    root_logger.setLevel(LEVELS.get(level.lower(), logging.INFO))
    root_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # SQL echo stays off unless debugging
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level.lower() == "debug" else logging.WARNING
    )
