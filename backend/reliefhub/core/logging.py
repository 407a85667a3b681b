"""Logging configuration with structured `extra` field rendering."""

from __future__ import annotations

import logging
import sys
import time

from pythonjsonlogger.json import JsonFormatter

from reliefhub.core.config import settings

_ROOT_LOGGER_NAME = "reliefhub"
_HANDLER_NAME = "reliefhub.stream"
_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_STANDARD_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
    | {"message", "asctime", "taskName"},
)


def _record_extras(record: logging.LogRecord) -> dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    }


class KeyValueFormatter(logging.Formatter):
    """Text formatter that appends `extra` fields as sorted `key=value` pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = _record_extras(record)
        if not extras:
            return base
        rendered = " ".join(f"{key}={extras[key]!r}" for key in sorted(extras))
        return f"{base} {rendered}"


def _build_formatter() -> logging.Formatter:
    formatter: logging.Formatter
    if settings.log_format.strip().lower() == "json":
        formatter = JsonFormatter(_JSON_FORMAT)
    else:
        formatter = KeyValueFormatter(_TEXT_FORMAT)
    if settings.log_use_utc:
        formatter.converter = time.gmtime
    return formatter


def configure_logging() -> None:
    """Install the process-wide stream handler once, honouring log settings."""
    level = logging.getLevelName(settings.log_level.strip().upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if handler.get_name() == _HANDLER_NAME:
            handler.setFormatter(_build_formatter())
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(_build_formatter())
    root.addHandler(handler)
    logging.getLogger(_ROOT_LOGGER_NAME).setLevel(level)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module logger under the application namespace."""
    if not name:
        return logging.getLogger(_ROOT_LOGGER_NAME)
    return logging.getLogger(name)
