"""
Structured JSON logging for the treasury kernel.

Every record is one JSON object per line.  Fields bound through LogContext
(correlation id, actor, producer, period and movement) are merged into each
record, so an import run or a close can be followed across services.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import UTC, date, datetime
from typing import Any

from treasury_kernel.exceptions import TreasuryKernelError

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

CONTEXT_FIELDS = ("correlation_id", "actor", "producer", "period_key", "movement_id")

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"treasury_log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """Context-local fields added to every log record (thread and task safe)."""

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        actor: str | None = None,
        producer: str | None = None,
        period_key: str | None = None,
        movement_id: str | None = None,
    ) -> None:
        """Set context fields. None leaves a field unchanged."""
        values = {
            "correlation_id": correlation_id,
            "actor": actor,
            "producer": producer,
            "period_key": period_key,
            "movement_id": movement_id,
        }
        for name, value in values.items():
            if value is not None:
                _context[name].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return {
            name: var.get() for name, var in _context.items() if var.get() is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """
        Context manager that sets fields on entry and restores them on exit.

        None values and unknown field names are ignored.
        """
        return _BoundContext(fields)


class _BoundContext:

    def __init__(self, fields: dict[str, str | None]):
        self._fields = {
            name: value
            for name, value in fields.items()
            if value is not None and name in _context
        }
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            var = _context[name]
            self._tokens.append((var, var.set(value)))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    """Money, dates and ids as strings."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, TreasuryKernelError):
        fields["exc_code"] = exc.code
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_ROOT_LOGGER = "treasury_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the treasury_kernel namespace, e.g. ``services.movement``."""
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the treasury_kernel logger. Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root.addHandler(h)


def reset_logging() -> None:
    """Undo configure_logging(). Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
