# SPDX-License-Identifier: MIT
"""Structured logging for pointforge.

Every logger call takes keyword fields next to the message. ``--json-logs``
emits one JSON object per record with the fields as top-level keys; the
console formatter appends them as ``key=value`` pairs instead.
"""
from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import IO, Any, Dict, Iterator, Mapping, Optional
from uuid import uuid4

_FIELDS_ATTR = "pointforge_fields"
_CURRENT_RUN: ContextVar[Optional[str]] = ContextVar("pointforge_run", default=None)

CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def get_run_id() -> Optional[str]:
    return _CURRENT_RUN.get()


@contextmanager
def run_context(run_id: Optional[str] = None) -> Iterator[str]:
    """Stamp every record emitted inside the block with one run identifier."""

    token = _CURRENT_RUN.set(run_id or uuid4().hex)
    try:
        yield _CURRENT_RUN.get()
    finally:
        _CURRENT_RUN.reset(token)


def _fields(record: logging.LogRecord) -> Mapping[str, Any]:
    return getattr(record, _FIELDS_ATTR, None) or {}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        document: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "run_id": getattr(record, "run_id", None),
            **_fields(record),
        }
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps({key: value for key, value in document.items() if value is not None}, default=str)


class KeyValueFormatter(logging.Formatter):
    """Console formatter; structured fields trail the message as ``key=value``."""

    def __init__(self, fmt: str = CONSOLE_FORMAT) -> None:
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _fields(record)
        return " ".join([line, *(f"{key}={value}" for key, value in fields.items())])


class StructuredLogger:
    """Thin facade over :class:`logging.Logger` that accepts keyword fields."""

    def __init__(self, name: str) -> None:
        self.logger = logging.getLogger(name)

    def log(self, level: int, msg: str, **fields: Any) -> None:
        if not self.logger.isEnabledFor(level):
            return
        exc_info = fields.pop("exc_info", None)
        self.logger.log(level, msg, exc_info=exc_info, extra={"run_id": get_run_id(), _FIELDS_ATTR: fields})

    def debug(self, msg: str, **fields: Any) -> None:
        self.log(logging.DEBUG, msg, **fields)

    def info(self, msg: str, **fields: Any) -> None:
        self.log(logging.INFO, msg, **fields)

    def warning(self, msg: str, **fields: Any) -> None:
        self.log(logging.WARNING, msg, **fields)

    def error(self, msg: str, **fields: Any) -> None:
        self.log(logging.ERROR, msg, **fields)

    @contextmanager
    def operation(self, name: str, **fields: Any) -> Iterator[Dict[str, Any]]:
        """Time a block and log how it ended.

        Entries added to the yielded dict show up on the completion record::

            with logger.operation("append", series="Stage.Working@A1") as op:
                op["points"] = 42
        """
        started = time.perf_counter()
        details: Dict[str, Any] = dict(fields)
        self.debug(f"Starting {name}", **details)
        try:
            yield details
        except Exception as exc:
            elapsed = round(time.perf_counter() - started, 3)
            self.error(f"Failed {name}", **details, duration_seconds=elapsed, error_type=type(exc).__name__)
            raise
        self.info(f"Completed {name}", **details, duration_seconds=round(time.perf_counter() - started, 3))


def configure_logging(level: str = "INFO", use_json: bool = False, stream: Optional[IO[str]] = None) -> None:
    """Install a single stderr handler on the root logger.

    Args:
        level: Level name such as ``DEBUG`` or ``WARNING``.
        use_json: Emit JSON documents instead of console lines.
        stream: Destination stream, ``sys.stderr`` when omitted.
    """
    root = logging.getLogger()
    root.setLevel(logging.getLevelName(level.upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if use_json else KeyValueFormatter())
    root.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(name)


__all__ = [
    "JSONFormatter",
    "KeyValueFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "run_context",
]
