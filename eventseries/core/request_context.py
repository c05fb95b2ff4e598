"""Request correlation ID tracking for materializer operations.

Callers (API layer, schedulers, login jobs) may bind their own correlation ID
before invoking the materializer; otherwise each public operation binds a fresh
one so that every log line of a single request can be correlated.
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# Uses contextvars for task-safe async context propagation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    """Get current request correlation ID from context.

    Returns:
        Current request correlation ID, or "no-request-id" if not set
    """
    request_id = request_id_var.get()
    return request_id if request_id else "no-request-id"


@contextmanager
def bind_request_id(request_id: str | None = None) -> Iterator[str]:
    """Bind a correlation ID for the duration of the block.

    An ID already bound by the caller is kept; a new one is generated only
    when nothing is bound yet.
    """
    current = request_id_var.get()
    if current and request_id is None:
        yield current
        return

    token = request_id_var.set(request_id or uuid.uuid4().hex[:12])
    try:
        yield request_id_var.get()
    finally:
        request_id_var.reset(token)
