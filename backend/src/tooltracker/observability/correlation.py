"""Correlation ids for log records.

One id per HTTP request, SMTP message or IMAP message. Stored in a
ContextVar, so it follows asyncio tasks and is copied into the worker
thread by asyncio.to_thread.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

NO_CORRELATION_ID = "-"


def generate_correlation_id() -> str:
    """Generate a new unique correlation id (UUID v4)."""
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Current correlation id, or "-" outside any request or message."""
    return correlation_id_var.get() or NO_CORRELATION_ID


def set_correlation_id(correlation_id: Optional[str]) -> None:
    correlation_id_var.set(correlation_id)
