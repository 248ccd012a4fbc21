"""
Console and rotating file handlers.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional


def _apply(handler: logging.Handler, level: int, formatter: logging.Formatter,
           filters: Optional[List[logging.Filter]]) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    for f in filters or ():
        handler.addFilter(f)


def create_console_handler(
    level: int,
    formatter: logging.Formatter,
    filters: Optional[List[logging.Filter]] = None,
) -> logging.StreamHandler:
    """
    Create a stdout handler.

    Example:
        >>> handler = create_console_handler(logging.INFO, ColoredFormatter())
        >>> logging.getLogger("resilient_network").addHandler(handler)
    """
    handler = logging.StreamHandler(sys.stdout)
    _apply(handler, level, formatter, filters)
    return handler


def create_file_handler(
    file_path: str,
    level: int,
    formatter: logging.Formatter,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    filters: Optional[List[logging.Filter]] = None,
) -> RotatingFileHandler:
    """
    Create a rotating file handler, creating the parent directory if needed.

    File rotation:
        network.log       <- current
        network.log.1     <- previous
        ...
        network.log.5     <- oldest (deleted on next rotation)
    """
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=file_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    _apply(handler, level, formatter, filters)
    return handler
