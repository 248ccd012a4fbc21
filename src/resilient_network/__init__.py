"""resilient-network - асинхронный HTTP оркестратор с circuit breaker, retry, rate limiting и ротацией прокси."""

import logging

from .network import Network, VERSION
from .core.config import (
    NetworkConfig,
    CircuitBreakerConfig,
    RetryConfig,
    EndpointKeyStrategy,
)
from .core.exceptions import (
    NetworkError,
    RateLimitExceeded,
    CircuitOpenError,
    RetriesExhaustedError,
    ConfigurationError,
    ConfigValidationError,
)
from .core.classifier import ClassifiedError, ErrorKind, classify
from .core.circuit_breaker import Admission, AsyncCircuitBreaker, CircuitBreakerRegistry, CircuitState
from .core.retry_engine import AttemptResult, RetryAttempt, RetryCoordinator
from .core.proxy import ProxyConnection, ProxyPoolProtocol, ProxyRotationPolicy, to_transport_proxy
from .core.rate_limit import (
    RateLimitContext,
    RateLimitDecision,
    RateLimiterProtocol,
    SlidingWindowRateLimiter,
)
from .core.transport import Transport, HTTPXTransport, RequestsTransport
from .core.models import RequestResult, TransportRequest, TransportResponse
from .core.stats import NetworkStats
from .core.logging import LoggingConfig, NetworkLogger
from .core.env_config import ConfigFileLoader, load_from_env
from .utils.proxy_pool import ProxyPool

# NullHandler против "No handler found"; настройка - через logging.getLogger('resilient_network')
logging.getLogger('resilient_network').addHandler(logging.NullHandler())

__version__ = VERSION

__all__ = [
    "Network",
    # Config
    "NetworkConfig",
    "CircuitBreakerConfig",
    "RetryConfig",
    "EndpointKeyStrategy",
    "LoggingConfig",
    "ConfigFileLoader",
    "load_from_env",
    # Exceptions
    "NetworkError",
    "RateLimitExceeded",
    "CircuitOpenError",
    "RetriesExhaustedError",
    "ConfigurationError",
    "ConfigValidationError",
    # Components
    "ClassifiedError",
    "ErrorKind",
    "classify",
    "Admission",
    "AsyncCircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
    "AttemptResult",
    "RetryAttempt",
    "RetryCoordinator",
    "ProxyConnection",
    "ProxyPoolProtocol",
    "ProxyRotationPolicy",
    "to_transport_proxy",
    "ProxyPool",
    "RateLimitContext",
    "RateLimitDecision",
    "RateLimiterProtocol",
    "SlidingWindowRateLimiter",
    "Transport",
    "HTTPXTransport",
    "RequestsTransport",
    "RequestResult",
    "TransportRequest",
    "TransportResponse",
    "NetworkStats",
    "NetworkLogger",
]
