"""Correlation logging context for tracing one negotiation call.

Every webhook, gather and simulator step binds the session and call it is
working on, so a single vendor call can be followed across the store,
state machine, reconciler and payment coordinator.

Usage:
    from negotiator.logging_context import bind_call, get_call_logger

    bind_call("3f2c...", "a91e...")
    logger = get_call_logger(__name__)
    logger.info("Gather received")  # → [a91e...] Gather received
"""

import logging
from contextvars import ContextVar
from typing import Optional

_session_id: ContextVar[str] = ContextVar("session_id", default="-")
_call_id: ContextVar[str] = ContextVar("call_id", default="NO_CALL_ID")


def bind_call(session_id: Optional[str], call_id: Optional[str] = None) -> None:
    """Set the correlation IDs for the current async context."""
    _session_id.set(session_id or "-")
    _call_id.set(call_id or "NO_CALL_ID")


def get_call_id() -> str:
    """Retrieve the current call correlation ID."""
    return _call_id.get()


def get_session_id() -> str:
    """Retrieve the current session correlation ID."""
    return _session_id.get()


class CallContextFilter(logging.Filter):
    """Injects session_id and call_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _session_id.get()  # type: ignore[attr-defined]
        record.call_id = _call_id.get()  # type: ignore[attr-defined]
        return True


def get_call_logger(name: str) -> logging.Logger:
    """Return a logger with the CallContextFilter attached.

    The filter adds ``session_id`` and ``call_id`` to each record so
    formatters can include ``%(call_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, CallContextFilter) for f in logger.filters):
        logger.addFilter(CallContextFilter())
    return logger
