"""Structured logging: request correlation ids, masking and operation timing."""

import hashlib
import logging
import re
import time
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Any, Callable, Optional

from ulid import ULID

from src.utils.logging_config import LoggingConfig

_correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Keyword arguments that belong to Logger._log rather than to the record
_LOG_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_MASKS = (
    (re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE), "[REDACTED_EMAIL]"),
    (re.compile(r"\$(?:2[aby]|argon2(?:id|i|d))\$[^\s\"']+"), "[REDACTED_HASH]"),
    (re.compile(r"(?i)\b(bearer|token|secret|password|api[_-]?key)([\s:=]+)[A-Za-z0-9._-]{16,}"), r"\1\2[REDACTED]"),
)


def generate_correlation_id() -> str:
    return f"req_{str(ULID()).lower()}"


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    _correlation_id_var.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """Bind a correlation id (generated when absent) for the duration of a request."""
    token = _correlation_id_var.set(correlation_id or generate_correlation_id())
    try:
        yield _correlation_id_var.get()
    finally:
        _correlation_id_var.reset(token)


def mask_sensitive_data(text: str) -> str:
    """Redact emails, password hashes and credentials from free text."""
    if not text or not LoggingConfig.LOG_MASK_SENSITIVE:
        return text
    for pattern, replacement in _MASKS:
        text = pattern.sub(replacement, text)
    return text


def mask_user_id(user_id: Optional[str]) -> Optional[str]:
    """Shorten a user id to a prefix plus a stable digest."""
    if not user_id or not LoggingConfig.LOG_MASK_SENSITIVE or len(user_id) <= 12:
        return user_id
    digest = hashlib.sha256(user_id.encode()).hexdigest()[:8]
    return f"{user_id[:4]}...{digest}"


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter taking record fields as keyword arguments.

    ``logger.info("Task created", task_id=task.id)`` attaches ``task_id`` to
    the record, along with the current correlation id.
    """

    def process(self, msg, kwargs):
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _LOG_KWARGS}
        extra = {**(self.extra or {}), **kwargs.pop("extra", {}), **fields}

        correlation_id = get_correlation_id()
        if correlation_id:
            extra["correlation_id"] = correlation_id

        kwargs["extra"] = extra
        return mask_sensitive_data(msg) if isinstance(msg, str) else msg, kwargs


def get_structured_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


@contextmanager
def log_timing(operation_name: str, logger: Optional[StructuredLogger] = None, **context: Any):
    """Log one record when the block finishes: duration, outcome, and a warning level if slow."""
    log = logger or get_structured_logger(__name__)
    started = time.perf_counter()
    outcome = "ok"
    try:
        yield
    except Exception:
        outcome = "error"
        raise
    finally:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        slow = elapsed_ms > LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS
        log.log(
            logging.WARNING if slow else logging.INFO,
            f"{'Slow operation' if slow else 'Completed'} {operation_name}",
            operation=operation_name,
            outcome=outcome,
            processing_time_ms=elapsed_ms,
            **context,
        )


def timed(operation_name: Optional[str] = None):
    """Wrap an async service method in log_timing."""
    def decorator(func: Callable) -> Callable:
        name = operation_name or f"{func.__module__}.{func.__qualname__}"
        log = get_structured_logger(func.__module__)

        @wraps(func)
        async def wrapper(*args, **kwargs):
            with log_timing(name, logger=log):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
