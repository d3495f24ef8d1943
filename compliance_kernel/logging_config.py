"""
Structured JSON logging for the compliance kernel.

Every record is one JSON line: a fixed envelope (``ts``, ``level``,
``logger``, ``message``), the evaluation context bound through
``LogContext``, the record's ``extra`` fields, and, for kernel exceptions,
the error ``code`` plus the exception's public attributes as ``exc_*``.

Amounts are logged as their exact Decimal text (``"5000.00"``), enums as
their value, and sets as sorted lists, so two runs over the same inputs
produce comparable log lines.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Evaluation context
# ---------------------------------------------------------------------------

# Fields a record can inherit from the surrounding evaluation, in output order.
CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "batch_id",
    "rule_set_id",
    "client_id",
    "obligation_id",
    "tracker_id",
)

_CONTEXT: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"compliance_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")


class LogContext:
    """
    Evaluation-scoped log fields, held in context variables.

    Worker threads start with an empty context; the batch service binds
    ``batch_id`` inside each worker, and the evaluator binds the client,
    obligation and tracker around a single evaluation.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set the given fields; None values are ignored."""
        _check_fields(fields)
        for name, value in fields.items():
            if value is not None:
                _CONTEXT[name].set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        """Bound fields only, in CONTEXT_FIELDS order."""
        bound: dict[str, str] = {}
        for name in CONTEXT_FIELDS:
            value = _CONTEXT[name].get()
            if value is not None:
                bound[name] = value
        return bound

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Bind fields for the duration of the block, then restore them."""
        _check_fields(fields)
        tokens = [
            (_CONTEXT[name], _CONTEXT[name].set(value))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON formatting
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(_to_json(v) for v in value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            # Kernel errors keep their constructor arguments as attributes.
            fields["exc_code"] = code
            for name, value in vars(exc).items():
                if not name.startswith("_") and name not in ("args", "code"):
                    fields[f"exc_{name}"] = value
        return fields


# ---------------------------------------------------------------------------
# Loggers and setup
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "compliance_kernel"


def get_logger(name: str) -> logging.Logger:
    """``get_logger("engines.penalty_calculator")`` -> ``compliance_kernel.engines.penalty_calculator``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Route the ``compliance_kernel`` hierarchy to one JSON handler.

    Only the first call has any effect.  ``level`` accepts a level number or
    a name such as ``"DEBUG"``.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if isinstance(level, str):
        level = logging.getLevelNamesMapping()[level.upper()]

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
