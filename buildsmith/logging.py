"""Structured logging helpers: JSON lines with context."""

from __future__ import annotations

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        props = getattr(record, "props", None)
        if isinstance(props, dict):
            payload.update(props)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def get_logger(name: str = "buildsmith") -> logging.Logger:
    # Child loggers propagate to the configured "buildsmith" root.
    root = logging.getLogger("buildsmith")
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return logging.getLogger(name)


def log_event(logger: logging.Logger, event: str, props: dict[str, Any] | None = None) -> None:
    logger.info(event, extra={"props": {"event": event, **(props or {})}})


class TimedEvent:
    """Collects properties while a timed block runs; see :func:`timed_event`."""

    def __init__(self, name: str, props: dict[str, Any]) -> None:
        self.name = name
        self.props = dict(props)

    def add_property(self, key: str, value: Any) -> None:
        self.props[key] = value


@contextmanager
def timed_event(logger: logging.Logger, name: str, **props: Any) -> Iterator[TimedEvent]:
    """Log *name* with its duration (and any collected properties) when the block exits."""
    event = TimedEvent(name, props)
    start = time.perf_counter()
    try:
        yield event
    finally:
        event.props["duration_ms"] = round((time.perf_counter() - start) * 1000, 2)
        log_event(logger, name, event.props)
