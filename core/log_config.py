"""
Logging setup shared by every entry point.

Modules log through ``logging.getLogger(__name__)``; this only decides
where records go and what they look like.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional


TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Noisy third-party loggers kept at WARNING unless DEBUG is requested
QUIET_LOGGERS = ("aiohttp", "sqlalchemy.engine", "urllib3")


def setup_logging(
    level: Optional[str] = None,
    log_format: str = "text",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Log level name, falls back to LOG_LEVEL env var then INFO
        log_format: "text" or "json"
        log_file: Optional file to mirror output into

    Returns:
        The "ingestion" logger
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = handlers

    if log_level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("ingestion")
