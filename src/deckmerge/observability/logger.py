"""Structured JSON logger for deckmerge.

Each record is emitted as one JSON object per line so that callers can ship
engine diagnostics to whatever aggregation pipeline they already run.

Typical structured output::

    {"ts": "2025-07-01T12:00:00.123456+00:00", "level": "DEBUG",
     "logger": "deckmerge.merge", "message": "merge resolved",
     "conflicts": 2, "entries": 61}

Usage::

    from deckmerge.observability import get_logger, log_event

    log = get_logger("deckmerge.diff")
    log_event(log, logging.DEBUG, "diff computed", added=3, removed=1)
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _json_default(value: Any) -> Any:
    """Serialise engine types that :mod:`json` does not know about."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts`` (ISO-8601 UTC), ``level``, ``logger`` and
    ``message``.  Fields passed through ``extra={"extra_fields": {...}}``
    are merged into the top-level object; enum members are written as their
    values.  Exception and stack information is included when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] | None = getattr(record, "extra_fields", None)
        if extra_fields is not None:
            log_entry.update(extra_fields)

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(log_entry, default=_json_default)


# One handler per logger name so that ``get_logger`` is idempotent.
_configured_loggers: set[str] = set()


def get_logger(
    name: str = "deckmerge",
    *,
    level: int | str = logging.WARNING,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    Parameters
    ----------
    name:
        Logger name.  Engine modules use children of ``"deckmerge"`` such
        as ``"deckmerge.diff"`` or ``"deckmerge.history"``.
    level:
        Initial level, as an ``int`` or a case-insensitive name.  The
        engine is quiet by default; raise the level to ``DEBUG`` to see
        per-operation records.
    stream:
        Output stream for the handler.  Defaults to ``sys.stderr``.

    Returns
    -------
    logging.Logger
        Repeated calls with the same *name* return the same logger and do
        **not** add duplicate handlers.
    """
    logger = logging.getLogger(name)

    if name not in _configured_loggers:
        resolved_level = (
            logging.getLevelName(level.upper())
            if isinstance(level, str)
            else level
        )
        logger.setLevel(resolved_level)

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
        logger.propagate = False

        _configured_loggers.add(name)

    return logger


def log_event(logger: logging.Logger, level: int, message: str, **fields: Any) -> None:
    """Emit *message* with *fields* as structured extras.

    The record is only built when *level* is enabled, so call sites can
    pass computed values without guarding.
    """
    if logger.isEnabledFor(level):
        logger.log(level, message, extra={"extra_fields": fields})
