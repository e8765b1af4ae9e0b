"""
Logging for ingest runs.

``ingest`` gets console output plus daily and error log files. Two side
channels never propagate to the console: ``ingest.performance`` (throttle and
timing notes) and ``ingest.movement`` (one line per file written).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

BASE_LOGGER = "ingest"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def parse_level(value: Union[str, int, None], default: int = logging.INFO) -> int:
    """Accept ``"debug"``/``"INFO"``/``20``; unknown names fall back to ``default``."""
    if value is None:
        return default
    if isinstance(value, int):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    return level if isinstance(level, int) else default


def _file_handler(path: Path, formatter: logging.Formatter, level: int = logging.NOTSET) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _side_channel(name: str, path: Path, formatter: logging.Formatter) -> logging.Logger:
    logger = logging.getLogger(f"{BASE_LOGGER}.{name}")
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        logger.addHandler(_file_handler(path, formatter))
        logger.propagate = False
    return logger


def setup_logging(
    log_dir: Path,
    level: Union[str, int, None] = logging.INFO,
    console: bool = True,
    now: Optional[datetime] = None,
) -> Dict[str, logging.Logger]:
    """Attach handlers once per process and return the main/performance/movement loggers."""
    log_dir.mkdir(parents=True, exist_ok=True)
    date_stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    formatter = logging.Formatter(LOG_FORMAT)

    base_logger = logging.getLogger(BASE_LOGGER)
    base_logger.setLevel(parse_level(level))
    if not base_logger.handlers:
        if console:
            stream_handler = logging.StreamHandler()
            stream_handler.setFormatter(formatter)
            base_logger.addHandler(stream_handler)
        base_logger.addHandler(_file_handler(log_dir / f"ingest_log_{date_stamp}.log", formatter))
        base_logger.addHandler(_file_handler(log_dir / f"error_log_{date_stamp}.log", formatter, logging.ERROR))

    return {
        "main": base_logger,
        "performance": _side_channel("performance", log_dir / f"performance_log_{date_stamp}.log", formatter),
        "movement": _side_channel("movement", log_dir / f"movement_log_{date_stamp}.log", formatter),
    }
