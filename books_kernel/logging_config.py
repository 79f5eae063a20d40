"""
Module: books_kernel.logging_config
Responsibility: One-line JSON log records for every logger under the
    ``books_kernel`` namespace, enriched with request-scoped context
    (organization, actor, transaction, period).
Architecture position: Kernel > cross-cutting.  Imported by services,
    engines and the configuration loader; imports nothing from them.

Usage::

    logger = get_logger("services.ledger")
    with LogContext.bind(organization_id=str(org_id), actor_id=str(actor_id)):
        logger.info("transaction_posted", extra={"transaction_number": number})
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
from typing import Any, TextIO
from uuid import UUID

LOGGER_ROOT = "books_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "organization_id",
    "actor_id",
    "transaction_id",
    "period",
)

_context: ContextVar[dict[str, str]] = ContextVar("books_log_context", default={})


class LogContext:
    """
    Request-scoped fields copied into every record.

    Backed by a single ``ContextVar`` so values follow threads and asyncio
    tasks.  Unknown field names raise ``KeyError``.
    """

    @staticmethod
    def _validated(fields: dict[str, Any]) -> dict[str, str]:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise KeyError(f"Unknown log context field(s): {sorted(unknown)}")
        return {k: str(v) for k, v in fields.items() if v is not None}

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Merge non-None fields into the current context."""
        _context.set({**_context.get(), **cls._validated(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[dict[str, str]]:
        """Add fields for the duration of a ``with`` block, then restore."""
        merged = {**_context.get(), **cls._validated(fields)}
        token = _context.set(merged)
        try:
            yield merged
        finally:
            _context.reset(token)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    return repr(obj)


# Attributes every LogRecord carries; anything else arrived via ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
            "traceback": self.formatException(record.exc_info),
        }
        # BooksKernelError subclasses carry a code plus structured attributes.
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger named ``books_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``books_kernel`` root. Idempotent."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(LOGGER_ROOT)
        root.setLevel(level)
        root.propagate = False
        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)


def reset_logging() -> None:
    """Detach handlers so ``configure_logging`` can run again (tests)."""
    global _configured
    with _lock:
        _configured = False
        root = logging.getLogger(LOGGER_ROOT)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
