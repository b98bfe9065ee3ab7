"""
Structured logging for dnsop.

Log records are emitted as single-line JSON carrying reconciliation
context (record, root host, zone, owner, operation), so one hostname can
be followed across writers in a log aggregation tool.

A reconcile pass binds its context once::

    log = op_logger.bind(record="default/shop", owner_id="2q5hyv01")
    log.info("Applied 2 changes", zone_id="Z123")

Every line of a bound logger shares one ``request_id``.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

CONTEXT_KEYS = ("request_id", "record", "root_host", "zone_id", "owner_id", "operation")


def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


class StructuredFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            log_entry["exception"] = f"{type(exc).__name__}: {exc}"
        return json.dumps(log_entry)


class DNSOpLogger:
    """Wrapper around :mod:`logging` that attaches reconciliation context.

    Attributes:
        logger: Underlying stdlib logger, shared by every bound copy.
        context: Context fields added to every record this logger emits.
    """

    def __init__(self, name: str = "dnsop", context: dict[str, Any] | None = None) -> None:
        self.logger = logging.getLogger(name)
        self.context = dict(context or {})
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    @staticmethod
    def _check(context: dict[str, Any]) -> None:
        unknown = set(context) - set(CONTEXT_KEYS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")

    def bind(self, **context: Any) -> DNSOpLogger:
        """Return a logger adding *context* (and one request ID) to every line."""
        self._check(context)
        merged = {**self.context, **context}
        merged.setdefault("request_id", _new_request_id())
        return DNSOpLogger(self.logger.name, merged)

    def log_operation(
        self, level: int, message: str, *, exc_info: bool = False, **context: Any
    ) -> None:
        """Emit a structured log record.

        Args:
            level: Logging level (e.g. logging.INFO).
            message: Human-readable message.
            exc_info: Whether to include exception info.
            **context: Fields from :data:`CONTEXT_KEYS`, overriding the
                bound ones for this line. ``request_id`` is generated when
                neither side sets it.
        """
        self._check(context)
        extra = {**self.context, **context}
        extra.setdefault("request_id", _new_request_id())
        self.logger.log(level, message, extra=extra, exc_info=exc_info)

    def setLevel(self, level: str | int) -> None:
        if isinstance(level, str):
            level = getattr(logging, level.upper(), logging.INFO)
        self.logger.setLevel(level)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log_operation(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log_operation(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log_operation(logging.ERROR, message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log_operation(logging.DEBUG, message, **kwargs)


# Module-level singleton
op_logger = DNSOpLogger()
