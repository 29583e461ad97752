# cryptofile/log.py

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER_NAME = "cryptofile"
LOG_FORMAT = "[%(asctime)s][%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_file_path(log_dir: str | Path, day: Optional[date] = None) -> Path:
    """Daily log file inside log_dir, e.g. cryptofile-2024-01-31.log."""
    day = day or date.today()
    return Path(log_dir).expanduser() / f"{LOGGER_NAME}-{day.isoformat()}.log"


def configure_logging(config: Dict[str, Any], console: bool = True) -> logging.Logger:
    """
    Attach handlers to the package logger from the app config.

    - log_level: level name for the package logger.
    - log_dir: when set, messages also go to the daily log file.

    Calling it again replaces the handlers it added before.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(str(config.get("log_level") or "INFO").upper())

    for handler in list(logger.handlers):
        if getattr(handler, "_cryptofile", False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers: list[logging.Handler] = []

    if console:
        handlers.append(logging.StreamHandler())

    log_dir = config.get("log_dir")
    if log_dir:
        path = log_file_path(log_dir)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._cryptofile = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger
