"""
NetworkLogger: a configured ``logging.Logger`` that takes extra fields as
keyword arguments and masks secrets in them.
"""

import logging
from typing import Any, Optional

from .config import LoggingConfig, LogLevel
from .filters import CorrelationIdFilter, ExtraFieldsFilter
from .formatters import get_formatter
from .handlers import create_console_handler, create_file_handler
from ...utils.sanitizer import mask_sensitive_data


class NetworkLogger:
    """
    Logger used by Network when ``NetworkConfig.logging`` is set.

    Example:
        >>> logger = NetworkLogger(LoggingConfig.create(level="DEBUG", format="colored"))
        >>> logger.info("Request started", method="GET", url="https://api.example.com")
        >>> logger.close()
    """

    def __init__(self, config: Optional[LoggingConfig] = None, name: Optional[str] = None):
        """
        Args:
            config: Logging configuration (defaults if None)
            name: Logger name (defaults to config.name)
        """
        self.config = config or LoggingConfig()
        self.name = name or self.config.name
        self._closed = False

        level = self._get_level(self.config.level)
        self._logger = logging.getLogger(self.name)
        self._logger.setLevel(level)
        self._logger.propagate = False

        # Reinitializing replaces the previous handlers
        self._close_handlers()

        filters = []
        if self.config.enable_correlation_id:
            filters.append(CorrelationIdFilter())
        if self.config.extra_fields:
            filters.append(ExtraFieldsFilter(self.config.extra_fields))

        formatter = get_formatter(self.config.format.value)

        if self.config.enable_console:
            self._logger.addHandler(create_console_handler(level, formatter, filters))

        if self.config.enable_file and self.config.file_path:
            self._logger.addHandler(
                create_file_handler(
                    file_path=self.config.file_path,
                    level=level,
                    formatter=formatter,
                    max_bytes=self.config.max_bytes,
                    backup_count=self.config.backup_count,
                    filters=filters,
                )
            )

    @staticmethod
    def _get_level(level: LogLevel) -> int:
        return getattr(logging, level.value)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _log(self, level: int, message: str, kwargs: dict, exc_info: bool = False) -> None:
        self._logger.log(level, message, extra=mask_sensitive_data(kwargs), exc_info=exc_info)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """
        Example:
            >>> logger.info("Request succeeded", status=200, duration=0.15)
        """
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, message, kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log at ERROR with the current exception's traceback."""
        self._log(logging.ERROR, message, kwargs, exc_info=True)

    def _close_handlers(self) -> None:
        for handler in self._logger.handlers[:]:
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)

    def close(self) -> None:
        """Flush and close all handlers. Idempotent."""
        if self._closed:
            return
        self._close_handlers()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


_default_logger: Optional[NetworkLogger] = None


def get_logger(config: Optional[LoggingConfig] = None) -> NetworkLogger:
    """
    Get the shared NetworkLogger, creating it on first call.

    ``config`` is only used on the first call; use configure_logging() to
    replace an existing logger.
    """
    global _default_logger

    if _default_logger is None:
        _default_logger = NetworkLogger(config)
    return _default_logger


def configure_logging(config: LoggingConfig) -> NetworkLogger:
    """Replace the shared NetworkLogger with one built from ``config``."""
    global _default_logger

    if _default_logger is not None:
        _default_logger.close()
    _default_logger = NetworkLogger(config)
    return _default_logger
