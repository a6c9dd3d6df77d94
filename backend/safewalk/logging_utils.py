from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from tempfile import gettempdir
from typing import Any

from pythonjsonlogger import jsonlogger

from .settings import settings

LOGGER_NAME = "safewalk_router"
LOG_FILE_NAME = "router.log.jsonl"


class RouterJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines with a UTC timestamp, level and logger name on every record."""

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("ts", datetime.fromtimestamp(record.created, tz=UTC).isoformat())
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name or "").upper())
    return level if isinstance(level, int) else logging.INFO


def _writable_log_dir(out_dir: str) -> Path | None:
    # OUT_DIR first; a read-only checkout falls back to the temp dir.
    for candidate in (Path(out_dir) / "logs", Path(gettempdir()) / "safewalk-router" / "logs"):
        try:
            candidate.mkdir(parents=True, exist_ok=True)
            marker = candidate / ".writetest"
            marker.touch(exist_ok=True)
            marker.unlink(missing_ok=True)
        except OSError:
            continue
        return candidate
    return None


def configure_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_safewalk_configured", False):
        return logger

    logger.setLevel(_level_from_name(settings.log_level))
    logger.propagate = False
    formatter = RouterJsonFormatter()

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    log_dir = _writable_log_dir(settings.out_dir)
    if log_dir is not None:
        try:
            file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8")
        except OSError:
            file_handler = None
        if file_handler is not None:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    logger._safewalk_configured = True  # type: ignore[attr-defined]
    return logger


_LOGGER: logging.Logger | None = None


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one structured record; `event` doubles as the message."""
    global _LOGGER
    if _LOGGER is None:
        _LOGGER = configure_logger()
    _LOGGER.log(level, event, extra={"event": event, **fields})
