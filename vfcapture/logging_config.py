"""Logging bootstrap for the capture client."""
from __future__ import annotations

import logging
from logging.config import dictConfig
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

DEFAULT_LOG_DIR = Path("~/.vfcapture/logs")
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(
    level: str = "INFO",
    log_dir: Union[Path, Literal[False], None] = None,
    retention_days: int = 14,
) -> None:
    """Console logging plus a daily rotated file unless ``log_dir`` is False."""

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": level,
        },
    }

    if log_dir is not False:
        if log_dir is None:
            log_dir = DEFAULT_LOG_DIR
        log_dir = Path(log_dir).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers["runtime_file"] = {
            "class": "logging.handlers.TimedRotatingFileHandler",
            "formatter": "default",
            "level": level,
            "filename": str(log_dir / "vfcapture-client.log"),
            "when": "midnight",
            "backupCount": max(int(retention_days), 1),
            "utc": True,
            "delay": True,
            "encoding": "utf-8",
        }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT}},
            "handlers": handlers,
            "root": {"level": level, "handlers": list(handlers)},
        }
    )
    # httpx logs every request at INFO; keep it to warnings unless debugging.
    if logging.getLevelName(level.upper()) != logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
