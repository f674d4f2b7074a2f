"""Correlation ids for log records.

Every tool call and every workflow instance runs under its own correlation id
so that log lines from concurrent deliveries can be told apart.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional


_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_initialization_correlation_id: Optional[str] = None


def generate_correlation_id() -> str:
    """Return a new id of the form ``req_<12 hex chars>``."""
    return f"req_{uuid.uuid4().hex[:12]}"


def set_correlation_id(correlation_id: Optional[str]):
    """Bind a correlation id to the current context.

    Returns:
        Token that can be passed to reset_correlation_id
    """
    return _correlation_id.set(correlation_id)


def reset_correlation_id(token) -> None:
    _correlation_id.reset(token)


def get_correlation_id() -> Optional[str]:
    """Current correlation id, or the start-up id while the server initializes."""
    return _correlation_id.get() or _initialization_correlation_id


def set_initialization_correlation_id(correlation_id: str) -> None:
    global _initialization_correlation_id
    _initialization_correlation_id = correlation_id


def clear_initialization_correlation_id() -> None:
    global _initialization_correlation_id
    _initialization_correlation_id = None


class CorrelationIdFilter(logging.Filter):
    """Attach ``correlation_id`` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or "-"
        return True
