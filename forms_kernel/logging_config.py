"""
Structured logging for the forms kernel (``forms_kernel.logging_config``).

Responsibility
--------------
Every ``forms_kernel.*`` logger writes one JSON object per line.  A line
carries the workflow operation it belongs to (the correlation id, actor,
form and response that ``FormWorkflowAPI`` binds for the duration of a
call) plus the ``extra=`` fields of the call site.  Kernel errors logged
with ``exc_info`` add their ``code`` and structured attributes as
``exc_*`` fields.

Architecture position
---------------------
Kernel infrastructure.  Imported by every layer; imports nothing from
the project.

Invariants enforced
-------------------
* Bound context is limited to ``CONTEXT_FIELDS``.
* ``LogContext.bind`` restores the previous context on exit, including
  when the block raises.
* ``extra=`` keys never overwrite the envelope or the bound context.
* ``configure_logging`` attaches at most one JSON handler until
  ``reset_logging`` detaches it.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from enum import Enum
from types import MappingProxyType
from typing import IO, Any

LOGGER_NAMESPACE = "forms_kernel"

CONTEXT_FIELDS: tuple[str, ...] = ("correlation_id", "actor_id", "form_id", "response_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("forms_log_context", default=_EMPTY)


# ---------------------------------------------------------------------------
# Operation context
# ---------------------------------------------------------------------------


class LogContext:
    """Log fields of the workflow operation running in this thread or task."""

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: object) -> Iterator[None]:
        """Add ``fields`` to the context for the block; ``None`` values are skipped.

        Raises:
            TypeError: for a field outside ``CONTEXT_FIELDS``.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        merged = dict(_context.get())
        merged.update((name, str(value)) for name, value in fields.items() if value is not None)
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_LOG_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    # Statuses and decisions are str enums; log their wire value.
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _error_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Envelope, then bound context, then extras, then the error if any."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for name, value in vars(record).items():
            if name not in _LOG_RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


class _JSONLineHandler(logging.StreamHandler):

    def __init__(self, stream: IO[str] | None = None):
        super().__init__(stream or sys.stderr)
        self.setFormatter(StructuredFormatter())


_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger ``forms_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
) -> None:
    """Attach the JSON handler to the ``forms_kernel`` logger.

    Idempotent: once a handler is attached, later calls change nothing,
    so the first caller (a script, the API factory, the test suite) picks
    the stream and level.
    """
    root = logging.getLogger(LOGGER_NAMESPACE)
    with _lock:
        if any(isinstance(h, _JSONLineHandler) for h in root.handlers):
            return
        root.addHandler(_JSONLineHandler(stream))
        root.setLevel(level)
        root.propagate = False


def reset_logging() -> None:
    """Detach the JSON handler and restore logger defaults. Tests only."""
    root = logging.getLogger(LOGGER_NAMESPACE)
    with _lock:
        for handler in [h for h in root.handlers if isinstance(h, _JSONLineHandler)]:
            root.removeHandler(handler)
        root.setLevel(logging.NOTSET)
        root.propagate = True
