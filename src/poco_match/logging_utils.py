"""Console and JSON-lines logging for the ``poco_match`` logger tree."""

from __future__ import annotations

import json
import logging
from logging import Logger
from pathlib import Path
from typing import Any, Dict, Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "poco_match"


def configure_logging(log_file: Optional[Union[str, Path]] = None, *, level: Union[int, str] = logging.INFO) -> Logger:
    """Attach a rich console handler and, optionally, a JSON-lines file handler.

    Args:
        log_file: Optional path of a JSON-lines audit log. Parent directories
            are created.
        level: Level applied to the ``poco_match`` logger.

    Returns:
        The configured ``poco_match`` logger.
    """

    console = Console(stderr=True)
    handler = RichHandler(console=console, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    logger.handlers.clear()
    logger.addHandler(handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(StructuredJsonFormatter())
        logger.addHandler(file_handler)

    logger.debug("Structured logging initialised", extra={"event": "logging_configured", "data": {}})
    return logger


class StructuredJsonFormatter(logging.Formatter):
    """Formatter that emits one JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        base: Dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        if hasattr(record, "event"):
            base["event"] = getattr(record, "event")
        if hasattr(record, "data"):
            base["data"] = getattr(record, "data")
        return json.dumps(base, default=str)


__all__ = ["LOGGER_NAME", "configure_logging", "StructuredJsonFormatter"]
