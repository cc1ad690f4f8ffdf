"""Request context utilities.

The request ID is propagated into log lines and used as the ``traceId`` of
published organization events.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from uuid import uuid4

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_request_id() -> str | None:
    """Get the current correlation ID (if any)."""

    return _request_id_var.get()


def new_request_id() -> str:
    return uuid4().hex


@contextmanager
def request_id_context(request_id: str | None):
    """Bind the correlation ID for the duration of the block."""

    token: Token[str | None] = _request_id_var.set(request_id)
    try:
        yield
    finally:
        _request_id_var.reset(token)
