"""
Correlation ID tracking for inbound MQTT traffic.

Every dispatched channel event runs inside its own correlation scope so the
log lines for one command (parse, store update, state publish) can be
grouped together.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """Return a new UUID4 hex correlation ID."""
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _ = _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str]:
    """
    Scope a correlation ID, restoring the previous one on exit.

    Args:
        correlation_id: ID to use, a fresh one is generated when omitted

    Example:
        with correlation_context() as corr_id:
            await dispatcher.dispatch(event)
    """
    previous_id = get_correlation_id()
    current_id = correlation_id or generate_correlation_id()
    set_correlation_id(current_id)
    try:
        yield current_id
    finally:
        set_correlation_id(previous_id)


def ensure_correlation_id() -> str:
    """Return the current correlation ID, creating one for task entry points."""
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id()
        set_correlation_id(current_id)
    return current_id
