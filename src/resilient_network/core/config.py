"""
Система конфигурации для Network.

Все конфиги immutable (frozen dataclasses) для безопасного
совместного использования между конкурентными запросами.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .logging import LoggingConfig

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CIRCUIT BREAKER CONFIG
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class CircuitBreakerConfig:
    """
    Конфигурация Circuit Breaker (один breaker на endpoint).

    Args:
        failure_threshold: Подряд идущих ошибок для открытия circuit
        open_timeout: Время (сек) в OPEN до перехода в HALF_OPEN
        half_open_success_threshold: Успешных проб в HALF_OPEN для закрытия

    Examples:
        >>> CircuitBreakerConfig(failure_threshold=2)
        >>> CircuitBreakerConfig(failure_threshold=10, open_timeout=30.0)
    """
    failure_threshold: int = 5
    open_timeout: float = 60.0
    half_open_success_threshold: int = 1

    def __post_init__(self):
        """Валидация."""
        if self.failure_threshold <= 0:
            raise ValueError("failure_threshold must be positive")
        if self.open_timeout <= 0:
            raise ValueError("open_timeout must be positive")
        if self.half_open_success_threshold <= 0:
            raise ValueError("half_open_success_threshold must be positive")

    def to_dict(self) -> Dict[str, float]:
        return {
            "failure_threshold": self.failure_threshold,
            "open_timeout": self.open_timeout,
            "half_open_success_threshold": self.half_open_success_threshold,
        }

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RETRY CONFIG
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class RetryConfig:
    """
    Конфигурация retry стратегии.

    Args:
        max_attempts: Максимум попыток (включая первую)
        base_delay: Задержка перед первым retry (сек)
        max_delay: Максимальная задержка (сек)
        backoff_factor: Множитель для exponential backoff
        jitter: Добавлять случайность (против thundering herd)
        respect_retry_after: Учитывать Retry-After у 429 ответов

    Examples:
        >>> RetryConfig(max_attempts=3, base_delay=0.1, jitter=False)
        >>> RetryConfig(max_attempts=5, max_delay=120)
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    jitter: bool = True
    respect_retry_after: bool = True

    def __post_init__(self):
        """Валидация."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < 0:
            raise ValueError("max_delay must be non-negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    def to_dict(self) -> Dict[str, object]:
        return {
            "max_attempts": self.max_attempts,
            "base_delay": self.base_delay,
            "max_delay": self.max_delay,
            "backoff_factor": self.backoff_factor,
            "jitter": self.jitter,
            "respect_retry_after": self.respect_retry_after,
        }

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ENDPOINT KEYING
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class EndpointKeyStrategy(str, Enum):
    """Как из URL получается ключ circuit breaker'а."""
    URL = "url"              # URL как передан в request()
    HOST_PATH = "host_path"  # scheme://host/path, без query и fragment
    HOST = "host"            # scheme://host

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# MAIN CONFIG
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class NetworkConfig:
    """
    Главная конфигурация Network.

    Args:
        base_url: Базовый URL для относительных путей (опционально)
        timeout: Таймаут одной попытки (сек)
        default_headers: Заголовки по умолчанию
        circuit_breaker: Конфигурация circuit breaker'ов
        retry: Конфигурация retry
        key_strategy: Стратегия ключей для circuit breaker'ов
        logging: Конфигурация логирования (None = только logging.getLogger)

    Examples:
        >>> config = NetworkConfig(base_url="https://api.example.com")
        >>> config = NetworkConfig.create(timeout=10, max_attempts=5)
    """
    base_url: Optional[str] = None
    timeout: float = 30.0
    default_headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    key_strategy: EndpointKeyStrategy = EndpointKeyStrategy.URL
    logging: Optional['LoggingConfig'] = None

    def __post_init__(self):
        """Validate, normalize base_url and freeze mutable dicts."""
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

        if isinstance(self.default_headers, dict):
            object.__setattr__(self, 'default_headers', MappingProxyType(dict(self.default_headers)))

        if not isinstance(self.key_strategy, EndpointKeyStrategy):
            object.__setattr__(self, 'key_strategy', EndpointKeyStrategy(self.key_strategy))

        if self.base_url:
            normalized = self.base_url.rstrip('/')
            if normalized != self.base_url:
                object.__setattr__(self, 'base_url', normalized)

    @classmethod
    def create(
        cls,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        failure_threshold: Optional[int] = None,
        open_timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        jitter: Optional[bool] = None,
        key_strategy: EndpointKeyStrategy = EndpointKeyStrategy.URL,
        logging: Optional['LoggingConfig'] = None,
    ) -> 'NetworkConfig':
        """
        Удобный конструктор конфигурации.

        Параметры, оставленные None, берут значения по умолчанию
        соответствующих вложенных конфигов.

        Examples:
            >>> config = NetworkConfig.create(failure_threshold=2, max_attempts=1)
        """
        cb_kwargs = {}
        if failure_threshold is not None:
            cb_kwargs['failure_threshold'] = failure_threshold
        if open_timeout is not None:
            cb_kwargs['open_timeout'] = open_timeout

        retry_kwargs = {}
        if max_attempts is not None:
            retry_kwargs['max_attempts'] = max_attempts
        if base_delay is not None:
            retry_kwargs['base_delay'] = base_delay
        if jitter is not None:
            retry_kwargs['jitter'] = jitter

        return cls(
            base_url=base_url,
            timeout=timeout,
            default_headers=headers or {},
            circuit_breaker=CircuitBreakerConfig(**cb_kwargs),
            retry=RetryConfig(**retry_kwargs),
            key_strategy=key_strategy,
            logging=logging,
        )

    def with_retry(self, retry: RetryConfig) -> 'NetworkConfig':
        """Новый конфиг с другой retry политикой."""
        return replace(self, retry=retry)

    def with_circuit_breaker(self, circuit_breaker: CircuitBreakerConfig) -> 'NetworkConfig':
        """Новый конфиг с другими параметрами circuit breaker'а."""
        return replace(self, circuit_breaker=circuit_breaker)

    def with_headers(self, headers: Dict[str, str]) -> 'NetworkConfig':
        """
        Новый конфиг с дополнительными заголовками.

        Example:
            >>> new_config = config.with_headers({"X-API-Key": "secret"})
        """
        merged = dict(self.default_headers)
        merged.update(headers)
        return replace(self, default_headers=merged)
