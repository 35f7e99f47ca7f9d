"""
Structured logging for the billing kernel.

Every record under the ``billing_kernel`` logger is written as one JSON
object per line.  A record carries, in order of precedence:

* the fixed fields ``ts``, ``level``, ``logger`` and ``message``;
* the request-scoped fields held by ``LogContext`` (account, quote,
  payment, correlation id);
* whatever the call site passed through ``extra=``;
* for records logged with ``exc_info``, the exception type, message,
  ``code`` and the public attributes of kernel exceptions, prefixed
  ``exc_``.

UUIDs, Decimals, datetimes and enums are rendered as strings so that log
lines stay valid JSON whatever the services put in ``extra``.
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
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping

_ROOT = "billing_kernel"

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("billing_log_context", default=_EMPTY)


class LogContext:
    """
    Request-scoped fields attached to every log record.

    Backed by a single ``ContextVar`` holding an immutable mapping, so
    threads and asyncio tasks each see their own values.  Only the names
    in ``FIELDS`` are accepted; ``None`` values are ignored.
    """

    FIELDS = ("correlation_id", "account_id", "quote_id", "payment_id")

    @classmethod
    def _merged(cls, values: Mapping[str, Any]) -> Mapping[str, str]:
        unknown = set(values) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"unknown log context field(s): {', '.join(sorted(unknown))}")
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in values.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **values: Any) -> None:
        """Set fields for the rest of the current context."""
        _context.set(cls._merged(values))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **values: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the ``with`` body and restore the previous ones after."""
        token = _context.set(cls._merged(values))
        try:
            yield cls
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name in ("args", "code"):
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; see module docstring for the layout."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Logger ``billing_kernel.<name>``."""
    return logging.getLogger(f"{_ROOT}.{name}")


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_setup_lock = threading.Lock()
_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on the ``billing_kernel`` logger.

    Idempotent: once a handler is installed, later calls do nothing until
    ``reset_logging()``.  ``level`` may be a level number or a name such as
    ``KernelConfig.log_level``.

    Args:
        level: Threshold for the whole ``billing_kernel`` tree.
        stream: Stream for the default handler (stderr when omitted).
        handler: Use this handler instead of a new StreamHandler.
    """
    global _installed
    with _setup_lock:
        if _installed is not None:
            return
        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        root = logging.getLogger(_ROOT)
        root.setLevel(level.upper() if isinstance(level, str) else level)
        root.propagate = False
        root.addHandler(target)
        _installed = target


def reset_logging() -> None:
    """Remove the installed handler and restore defaults.  Tests only."""
    global _installed
    with _setup_lock:
        root = logging.getLogger(_ROOT)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        _installed = None
