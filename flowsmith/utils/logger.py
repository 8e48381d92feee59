# flowsmith/utils/logger.py
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


_LEVEL_MAP = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARN,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
    "NOTSET": logging.NOTSET,
}


def _env_level(default: str = "INFO") -> int:
    """Read LOG_LEVEL from env, fallback to default."""
    lvl = os.getenv("LOG_LEVEL", default).upper()
    return _LEVEL_MAP.get(lvl, logging.INFO)


def _colorize(level: int, msg: str) -> str:
    """Basic ANSI colorization by level (works on most terminals)."""
    if not sys.stderr.isatty():
        return msg
    if level >= logging.ERROR:
        return f"\033[91m{msg}\033[0m"   # red
    if level >= logging.WARNING:
        return f"\033[93m{msg}\033[0m"   # yellow
    if level >= logging.INFO:
        return f"\033[92m{msg}\033[0m"   # green
    return msg


class _ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        return _colorize(record.levelno, base)


_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def init_logger(
    name: str = "flowsmith",
    level: int | None = None,
    log_dir: str | Path | None = None,
) -> logging.Logger:
    """
    Initialize the project logger:
      - colored stream handler (stderr, so CLI JSON on stdout stays clean)
      - rotating file handler when ``log_dir`` or FLOWSMITH_LOG_DIR is set
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level if level is not None else _env_level("INFO"))

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(logger.level)
    sh.setFormatter(_ColorFormatter(fmt=_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(sh)

    log_dir = log_dir or os.getenv("FLOWSMITH_LOG_DIR")
    if log_dir:
        attach_file_handler(log_dir, name=name)
    return logger


def attach_file_handler(
    log_dir: str | Path,
    name: str = "flowsmith",
    file_name: str = "flowsmith.log",
    file_max_mb: int = 5,
    file_backup: int = 3,
) -> RotatingFileHandler:
    """Send the project logger to ``log_dir/file_name``, replacing any earlier log file."""
    logger = logging.getLogger(name)
    for old in [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]:
        logger.removeHandler(old)
        old.close()

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(
        filename=str(log_dir / file_name),
        maxBytes=file_max_mb * 1024 * 1024,
        backupCount=file_backup,
        encoding="utf-8",
    )
    fh.setLevel(logger.level)
    fh.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(fh)
    return fh


def get_logger(child: str) -> logging.Logger:
    """Create/get a child logger under the root project logger."""
    base = logging.getLogger("flowsmith")
    return base.getChild(child)


init_logger()
