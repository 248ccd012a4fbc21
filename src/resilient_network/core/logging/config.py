"""
Logging configuration for resilient-network.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""
    JSON = "json"
    TEXT = "text"
    COLORED = "colored"


@dataclass(frozen=True)
class LoggingConfig:
    """
    Logging settings for a Network instance.

    Attributes:
        level: Minimum level that reaches the handlers
        format: json, text or colored
        enable_console: Log to stdout
        enable_file: Log to a rotating file (needs file_path)
        file_path: Log file location
        max_bytes: Rotation size (default 10MB)
        backup_count: Rotated files to keep
        enable_correlation_id: Stamp records with the current request id
        extra_fields: Static fields added to every record
        name: Logger name

    Example:
        >>> config = LoggingConfig.create(level="DEBUG", format="json")
        >>> network = Network(NetworkConfig.create(logging=config))
    """

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    enable_console: bool = True
    enable_file: bool = False
    file_path: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_correlation_id: bool = True
    extra_fields: Dict[str, Any] = field(default_factory=dict)
    name: str = "resilient_network"

    def __post_init__(self):
        if self.enable_file and not self.file_path:
            raise ValueError("file_path is required when enable_file=True")
        if self.max_bytes <= 0:
            raise ValueError("max_bytes must be > 0")
        if self.backup_count < 0:
            raise ValueError("backup_count must be >= 0")

    @classmethod
    def create(
        cls,
        level: str = "INFO",
        format: str = "text",
        enable_console: bool = True,
        enable_file: bool = False,
        file_path: Optional[str] = None,
        max_bytes: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        enable_correlation_id: bool = True,
        extra_fields: Optional[Dict[str, Any]] = None,
        name: str = "resilient_network",
    ) -> "LoggingConfig":
        """
        Create LoggingConfig from plain strings (env vars, config files).

        Raises:
            ValueError: Unknown level or format
        """
        return cls(
            level=LogLevel(level.upper()),
            format=LogFormat(format.lower()),
            enable_console=enable_console,
            enable_file=enable_file,
            file_path=file_path,
            max_bytes=max_bytes,
            backup_count=backup_count,
            enable_correlation_id=enable_correlation_id,
            extra_fields=extra_fields or {},
            name=name,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "format": self.format.value,
            "enable_console": self.enable_console,
            "enable_file": self.enable_file,
            "file_path": self.file_path,
            "max_bytes": self.max_bytes,
            "backup_count": self.backup_count,
            "enable_correlation_id": self.enable_correlation_id,
            "extra_fields": dict(self.extra_fields),
            "name": self.name,
        }
