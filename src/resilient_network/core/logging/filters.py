"""
Log filters: correlation id and static extra fields.

The correlation id lives in a ContextVar, so every asyncio task (one per
concurrent request) sees its own value.
"""

import contextvars
import logging
from typing import Any, Dict, Optional

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "resilient_network_correlation_id", default=None
)


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """
    Bind a correlation id to the current context.

    Returns:
        Token for ``reset_correlation_id``

    Example:
        >>> token = set_correlation_id("req-12345")
        >>> logger.info("Processing request")  # carries correlation_id=req-12345
        >>> reset_correlation_id(token)
    """
    return _correlation_id.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def reset_correlation_id(token: contextvars.Token) -> None:
    """Restore the value that was current before ``set_correlation_id``."""
    _correlation_id.reset(token)


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """
    Adds ``correlation_id`` to records emitted while one is bound.

    Example:
        >>> handler.addFilter(CorrelationIdFilter())
    """

    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = get_correlation_id()
        if correlation_id and not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id
        return True


class ExtraFieldsFilter(logging.Filter):
    """
    Adds static fields (service, environment, version...) to every record.

    Fields already present on the record win.
    """

    def __init__(self, extra_fields: Dict[str, Any]):
        super().__init__()
        self.extra_fields = dict(extra_fields)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.extra_fields.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
