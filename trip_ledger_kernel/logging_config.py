"""
Structured JSON logging for the trip ledger.

Every record is written as one JSON object per line, built from:
    - the fixed fields ``ts``, ``level``, ``logger`` and ``message``;
    - the ambient ledger context held in :class:`LogContext` (which trip is
      being worked on, which participant is acting, which ledger entry is
      being appended, and an optional caller correlation id);
    - the record's ``extra`` fields.

Amounts are rendered the way ``TripDetail.to_dict`` renders them: a
``Decimal`` becomes a plain fixed-point string (``"12.50"``, never
``"1.25E+1"``). Ledger records passed as extras (``Participant``,
``Expense``, ``Transfer``, ``Share``) are flattened to dicts with the same
amount rendering, so an appended expense can be logged as a whole.

A record logged with ``exc_info`` gets an ``error`` object. For
``TripLedgerError`` subclasses it carries the machine-readable ``code``,
the ``category`` callers branch on (validation / invariant / lookup) and
the structured attributes of the exception (``expected``, ``actual``,
``participant_id`` ...). The traceback is kept under ``traceback``.

All loggers live under the ``trip_ledger`` namespace; ``configure_logging``
attaches the single JSON handler there and stops propagation to the root
logger so host applications keep their own handlers untouched.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from trip_ledger_kernel.exceptions import (
    InvariantViolation,
    TripLedgerError,
    TripNotFoundError,
    ValidationError,
)

# ---------------------------------------------------------------------------
# Ledger context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "trip_id", "participant_id", "entry_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"trip_ledger_{name}", default=None) for name in _CONTEXT_FIELDS
}


class LogContext:
    """
    Ledger fields attached to every record logged in the current context.

    Backed by ``contextvars``, so each thread and each asyncio task sees its
    own values. Fields:

        trip_id         trip whose ledger is being read or appended to
        participant_id  participant acting (payer, transfer sender, new member)
        entry_id        participant / expense / transfer id being appended
        correlation_id  caller-supplied request id
    """

    FIELDS = _CONTEXT_FIELDS

    @staticmethod
    def _var(name: str) -> ContextVar[str | None]:
        try:
            return _context_vars[name]
        except KeyError:
            raise ValueError(f"Unknown log context field: {name!r}") from None

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields; None values are ignored."""
        for name, value in fields.items():
            var = cls._var(name)
            if value is not None:
                var.set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-None context fields, in declaration order."""
        return {
            name: value
            for name in _CONTEXT_FIELDS
            if (value := _context_vars[name].get()) is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        tokens = [
            (cls._var(name), cls._var(name).set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON rendering
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _render(value: Any) -> Any:
    """``json.dumps`` default hook for ledger values."""
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return str(value)


def _error_category(exc: BaseException) -> str | None:
    if isinstance(exc, ValidationError):
        return "validation"
    if isinstance(exc, InvariantViolation):
        return "invariant"
    if isinstance(exc, TripNotFoundError):
        return "lookup"
    return None


def _error_payload(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, TripLedgerError):
        error["code"] = exc.code
        error["category"] = _error_category(exc)
        for key, value in vars(exc).items():
            if not key.startswith("_"):
                error[key] = value
    return error


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        # Explicit extras win over the ambient context.
        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _error_payload(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_render)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "trip_ledger"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the trip_ledger namespace, e.g. ``trip_ledger.engines.settlement``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the ``trip_ledger`` logger.

    Only the first call has an effect until :func:`reset_logging` runs.
    ``level`` accepts a number or a level name such as
    ``LedgerSettings.log_level``.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root.addHandler(h)


def reset_logging() -> None:
    """Detach handlers and allow ``configure_logging`` to run again (tests, CLI)."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
