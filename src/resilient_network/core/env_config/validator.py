"""
Pydantic settings model for environment configuration.

Variables use the RESILIENT_NETWORK_ prefix, e.g.::

    RESILIENT_NETWORK_BASE_URL=https://api.example.com
    RESILIENT_NETWORK_TIMEOUT=10
    RESILIENT_NETWORK_CB_FAILURE_THRESHOLD=3
    RESILIENT_NETWORK_RETRY_MAX_ATTEMPTS=5
    RESILIENT_NETWORK_DEFAULT_HEADERS={"X-Client": "crawler"}
    RESILIENT_NETWORK_LOG_ENABLED=true
    RESILIENT_NETWORK_LOG_FORMAT=json
"""

from typing import Dict, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..config import CircuitBreakerConfig, EndpointKeyStrategy, NetworkConfig, RetryConfig
from ..logging.config import LoggingConfig


class NetworkSettings(BaseSettings):
    """
    Flat, validated view of every Network option.

    Priority (highest to lowest): constructor kwargs, environment
    variables, .env file, defaults.

    Example:
        >>> settings = NetworkSettings(_env_file=".env.production")
        >>> config = settings.to_network_config()
    """

    model_config = SettingsConfigDict(
        env_prefix="RESILIENT_NETWORK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    base_url: Optional[str] = Field(default=None, description="Base URL for relative paths")
    timeout: float = Field(default=30.0, gt=0, description="Per-attempt timeout in seconds")
    default_headers: Dict[str, str] = Field(default_factory=dict)
    key_strategy: EndpointKeyStrategy = EndpointKeyStrategy.URL

    # Circuit breaker
    cb_failure_threshold: int = Field(default=5, ge=1)
    cb_open_timeout: float = Field(default=60.0, gt=0)
    cb_half_open_success_threshold: int = Field(default=1, ge=1)

    # Retry
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=10.0, ge=0)
    retry_backoff_factor: float = Field(default=2.0, ge=1.0)
    retry_jitter: bool = True
    retry_respect_retry_after: bool = True

    # Logging (off unless enabled: a library should not add handlers by default)
    log_enabled: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text", "colored"] = "text"
    log_enable_console: bool = True
    log_enable_file: bool = False
    log_file_path: Optional[str] = None
    log_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    log_backup_count: int = Field(default=5, ge=0)
    log_enable_correlation_id: bool = True

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def validate_relations(self) -> "NetworkSettings":
        if self.retry_max_delay < self.retry_base_delay:
            raise ValueError("retry_max_delay must be >= retry_base_delay")
        if self.log_enabled and self.log_enable_file and not self.log_file_path:
            raise ValueError("log_file_path is required when log_enable_file=True")
        return self

    def to_circuit_breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.cb_failure_threshold,
            open_timeout=self.cb_open_timeout,
            half_open_success_threshold=self.cb_half_open_success_threshold,
        )

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
            backoff_factor=self.retry_backoff_factor,
            jitter=self.retry_jitter,
            respect_retry_after=self.retry_respect_retry_after,
        )

    def to_logging_config(self) -> Optional[LoggingConfig]:
        """LoggingConfig, or None when logging is not enabled."""
        if not self.log_enabled:
            return None
        return LoggingConfig.create(
            level=self.log_level,
            format=self.log_format,
            enable_console=self.log_enable_console,
            enable_file=self.log_enable_file,
            file_path=self.log_file_path,
            max_bytes=self.log_max_bytes,
            backup_count=self.log_backup_count,
            enable_correlation_id=self.log_enable_correlation_id,
        )

    def to_network_config(self) -> NetworkConfig:
        return NetworkConfig(
            base_url=self.base_url,
            timeout=self.timeout,
            default_headers=dict(self.default_headers),
            circuit_breaker=self.to_circuit_breaker_config(),
            retry=self.to_retry_config(),
            key_strategy=self.key_strategy,
            logging=self.to_logging_config(),
        )
