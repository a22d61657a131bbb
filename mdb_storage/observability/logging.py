"""
Contextual logging utilities for MDB_STORAGE.

Log records emitted through get_logger() carry the current correlation ID
and storage context (collection and document names) in their ``extra``.
"""

import contextvars
import logging
import uuid
from datetime import datetime
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

_storage_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar(
    "storage_context", default=None
)


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """
    Set a correlation ID in the current context.

    Args:
        correlation_id: Optional correlation ID (generates new one if None)

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear the correlation ID from context."""
    _correlation_id.set(None)


def set_storage_context(
    collection_name: str | None = None,
    document_name: str | None = None,
    **kwargs: Any,
) -> contextvars.Token:
    """
    Set storage context for logging.

    Returns the contextvars token so callers can restore the previous value
    with reset_storage_context().
    """
    context = {"collection_name": collection_name, "document_name": document_name, **kwargs}
    return _storage_context.set(context)


def reset_storage_context(token: contextvars.Token) -> None:
    """Restore the storage context that was active before set_storage_context()."""
    _storage_context.reset(token)


def clear_storage_context() -> None:
    """Clear storage context."""
    _storage_context.set(None)


def get_logging_context() -> dict[str, Any]:
    """
    Get current logging context (correlation ID and storage context).

    Returns:
        Dictionary with context information
    """
    context: dict[str, Any] = {
        "timestamp": datetime.now().isoformat(),
    }

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    storage_context = _storage_context.get()
    if storage_context:
        context.update({k: v for k, v in storage_context.items() if v is not None})

    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that automatically adds context to log records.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """Add context to log records."""
        context = get_logging_context()

        extra = kwargs.get("extra", {})
        if extra:
            context.update(extra)

        kwargs["extra"] = context
        return msg, kwargs


def get_logger(name: str) -> ContextualLoggerAdapter:
    """
    Get a contextual logger that automatically adds correlation ID and context.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextualLoggerAdapter instance
    """
    base_logger = logging.getLogger(name)
    return ContextualLoggerAdapter(base_logger, {})
