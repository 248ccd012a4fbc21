"""Read-only statistics snapshot across all Network components."""

import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .circuit_breaker import CircuitBreakerRegistry
from .proxy import ProxyRotationPolicy
from .retry_engine import RetryCoordinator


@dataclass
class NetworkStats:
    """
    Snapshot returned by ``Network.get_stats()``. Recomputed on every call.

    Attributes:
        circuit_count: Number of endpoints with a circuit breaker
        circuits: Per-endpoint breaker stats
        retry_stats: RetryCoordinator counters
        has_rate_limiter: Whether a rate limiter is configured
        rate_limit_stats: Limiter stats or None
        has_proxy: Whether a proxy pool is configured
        proxy_stats: Pool stats or None
    """
    circuit_count: int
    circuits: Dict[str, dict] = field(default_factory=dict)
    retry_stats: Dict[str, Any] = field(default_factory=dict)
    has_rate_limiter: bool = False
    rate_limit_stats: Optional[Dict[str, Any]] = None
    has_proxy: bool = False
    proxy_stats: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circuit_count": self.circuit_count,
            "circuits": self.circuits,
            "retry_stats": self.retry_stats,
            "has_rate_limiter": self.has_rate_limiter,
            "rate_limit_stats": self.rate_limit_stats,
            "has_proxy": self.has_proxy,
            "proxy_stats": self.proxy_stats,
        }


class StatsAggregator:
    """Composes component stats without mutating any of them."""

    def __init__(
        self,
        circuits: CircuitBreakerRegistry,
        retry: RetryCoordinator,
        proxies: ProxyRotationPolicy,
        rate_limiter: Optional[Any] = None,
    ):
        self._circuits = circuits
        self._retry = retry
        self._proxies = proxies
        self._rate_limiter = rate_limiter

    async def rate_limit_stats(self) -> Optional[Dict[str, Any]]:
        if self._rate_limiter is None:
            return None
        stats = self._rate_limiter.get_stats()
        if inspect.isawaitable(stats):
            stats = await stats
        return stats

    async def snapshot(self) -> NetworkStats:
        circuits = await self._circuits.all_stats()
        return NetworkStats(
            circuit_count=len(circuits),
            circuits=circuits,
            retry_stats=self._retry.get_stats().to_dict(),
            has_rate_limiter=self._rate_limiter is not None,
            rate_limit_stats=await self.rate_limit_stats(),
            has_proxy=self._proxies.enabled,
            proxy_stats=await self._proxies.get_stats(),
        )
