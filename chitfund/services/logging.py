"""Logging setup for chit fund services.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where those records go. Output is written to stdout and to a log file.
The level comes from the ``level`` argument, then ``settings.log_level``.
"""

import logging
import sys
from pathlib import Path

from chitfund.services.config import get_settings

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _level_from_name(name: str | None) -> int:
    return LOG_LEVELS.get((name or "").strip().upper(), logging.INFO)


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def setup_logging(log_file: str | None = None, level: str | None = None) -> None:
    """
    Route all application logging to stdout and a log file.

    Args:
        log_file: Destination file (default: ``settings.log_file``); parent
            directories are created
        level: Level name (default: ``settings.log_level``, which reads
            LOG_LEVEL from the environment or `.env`)

    Calling it again replaces the handlers from the previous call.
    """
    settings = get_settings()
    log_path = Path(log_file or settings.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    log_level = _level_from_name(level or settings.log_level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(log_level)

    _attach(root, logging.StreamHandler(sys.stdout), log_level, formatter)
    _attach(root, logging.FileHandler(log_path, encoding="utf-8"), log_level, formatter)

    logging.getLogger(__name__).debug(
        "Logging to %s at %s", log_path, logging.getLevelName(log_level)
    )


__all__ = ["LOG_LEVELS", "setup_logging"]
