from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import os


_configured = False

ROOT_LOGGER = "assetflow"
LEVEL_ENV = "ASSETFLOW_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    level = os.getenv(LEVEL_ENV, "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
    )
    _configured = True


def set_level(level: int | str) -> None:
    """Override the level of every assetflow logger (e.g. for `--verbose`)."""
    _ensure_base_logger()
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.getLogger(ROOT_LOGGER).setLevel(level)


def get_logger(name: str, log_file: Path | str | None = None) -> logging.Logger:
    _ensure_base_logger()
    logger = logging.getLogger(name)
    if log_file:
        log_file = Path(log_file).absolute()
        # One handler per file, however often the same file is requested
        if not any(
            isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == log_file
            for h in logger.handlers
        ):
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(handler)
    return logger
