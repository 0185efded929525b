"""
Structured logging for the premium ledger.

Responsibility:
    Every record emitted under the ``premium_kernel`` logger hierarchy is
    rendered as one JSON object per line.  Batch-scoped identifiers (which
    contract or group is being settled, which batch run is active) are
    carried in a context variable so that engines and services do not have
    to thread them through every call.

Architecture position:
    Kernel -- imported by engines, services and config.  Depends on the
    standard library only.

Invariants enforced:
    - Every line carries ``ts``, ``level``, ``logger`` and ``message``.
    - Context fields never overwrite the envelope; ``extra`` fields never
      overwrite context fields.
    - ``configure_logging`` attaches at most one handler per process until
      ``reset_logging`` is called.
"""

from __future__ import annotations

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any

_LOGGER_PREFIX = "premium_kernel"

_EMPTY: Mapping[str, str] = MappingProxyType({})

_context: ContextVar[Mapping[str, str]] = ContextVar("premium_log_context", default=_EMPTY)


class LogContext:
    """Context-local identifiers merged into every structured log line."""

    FIELDS = ("correlation_id", "batch_id", "contract_id", "group_id", "actor_id")

    @classmethod
    def _merged(cls, fields: dict[str, str | None]) -> Mapping[str, str]:
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields; ``None`` values leave a field unchanged."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        current = _context.get()
        return {name: current[name] for name in cls.FIELDS if name in current}

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type[LogContext]]:
        """Set fields for the duration of a ``with`` block."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    # Ledger errors expose their identifiers as plain attributes.
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name, value in LogContext.get_all().items():
            payload.setdefault(name, value)
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        # IntEnum members are ints to json and would bypass ``default``.
        payload = {
            name: value.name if isinstance(value, Enum) else value
            for name, value in payload.items()
        }
        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Logger named ``premium_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_state_lock = threading.Lock()
_configured = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a structured handler to the ``premium_kernel`` logger.

    Only the first call has an effect; later calls are ignored until
    ``reset_logging()``.  ``level`` accepts a number or a level name.
    """
    global _configured
    with _state_lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.addHandler(handler)
    root.propagate = False


def reset_logging() -> None:
    """Undo ``configure_logging``.  Intended for tests."""
    global _configured
    with _state_lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
    root.propagate = True
