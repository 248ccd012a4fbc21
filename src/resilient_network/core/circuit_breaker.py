"""
Circuit Breaker pattern implementation, one breaker per endpoint.

Protects flaky upstreams (and ourselves) by failing fast once an endpoint
has failed ``failure_threshold`` times in a row, then probing it again after
``open_timeout``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, Optional
from urllib.parse import urlsplit, urlunsplit

from .config import CircuitBreakerConfig, EndpointKeyStrategy

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation, requests allowed
    OPEN = "open"            # Too many failures, requests blocked
    HALF_OPEN = "half_open"  # Testing recovery, one probe at a time


@dataclass(frozen=True)
class Admission:
    """
    Result of ``AsyncCircuitBreaker.try_admit()``.

    Attributes:
        allowed: Request may go out
        probe: Request holds the HALF_OPEN probe slot and must either record
            an outcome or give the slot back with ``release()``
    """
    allowed: bool
    probe: bool = False


class AsyncCircuitBreaker:
    """
    Circuit breaker for a single endpoint key.

    Uses asyncio.Lock so concurrent requests to the same endpoint never lose
    an update; breakers for different keys never contend.

    Transitions:
        - CLOSED -> OPEN: failure_count >= failure_threshold
        - OPEN -> HALF_OPEN: open_timeout elapsed since last failure
          (checked lazily on admission/stats, no background timer)
        - HALF_OPEN -> CLOSED: half_open_success_threshold probe successes
        - HALF_OPEN -> OPEN: any failure, restarts the open clock

    A success recorded while OPEN (a request let through by proxy rotation)
    counts as a probe success, a failure while OPEN restarts the open clock.

    Example:
        >>> breaker = AsyncCircuitBreaker("https://api.example.com/users",
        ...                               CircuitBreakerConfig(failure_threshold=2))
        >>> if await breaker.admit():
        ...     try:
        ...         response = await send()
        ...         await breaker.record_success()
        ...     except Exception:
        ...         await breaker.record_failure()
        ...         raise
    """

    def __init__(self, key: str, config: CircuitBreakerConfig):
        self.key = key
        self._config = config
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time: Optional[float] = None
        self._half_open_calls = 0
        self._lock = asyncio.Lock()

        logger.debug(
            "Circuit breaker created for %s: threshold=%d, open_timeout=%.1fs",
            key,
            config.failure_threshold,
            config.open_timeout,
        )

    async def admit(self) -> bool:
        """
        Check if a request may go out.

        Returns:
            True if allowed, False if the circuit is open or a half-open
            probe is already in flight
        """
        return (await self.try_admit()).allowed

    async def try_admit(self) -> Admission:
        """Like admit(), but also tells whether the HALF_OPEN probe slot was taken."""
        async with self._lock:
            self._check_state_transition()

            if self._state == CircuitState.CLOSED:
                return Admission(allowed=True)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_calls < 1:
                    self._half_open_calls += 1
                    return Admission(allowed=True, probe=True)
                return Admission(allowed=False)

            return Admission(allowed=False)

    async def record_success(self) -> None:
        """Record a successful request."""
        async with self._lock:
            self._check_state_transition()

            if self._state == CircuitState.CLOSED:
                if self._failure_count > 0:
                    logger.debug("Circuit breaker %s: reset failure count", self.key)
                self._failure_count = 0
                return

            # HALF_OPEN probe, or OPEN with a request let through by proxy rotation
            self._success_count += 1
            self._half_open_calls = 0

            if self._success_count >= self._config.half_open_success_threshold:
                logger.info(
                    "Circuit breaker %s %s -> CLOSED after %d successful probe(s)",
                    self.key,
                    self._state.name,
                    self._success_count,
                )
                self._reset()
            elif self._state == CircuitState.OPEN:
                logger.info("Circuit breaker %s OPEN -> HALF_OPEN after success", self.key)
                self._state = CircuitState.HALF_OPEN

    async def record_failure(self) -> None:
        """Record a failed request (after its retries were exhausted)."""
        async with self._lock:
            self._check_state_transition()

            self._failure_count += 1
            self._last_failure_time = time.time()

            if self._state == CircuitState.CLOSED:
                if self._failure_count >= self._config.failure_threshold:
                    logger.warning(
                        "Circuit breaker %s CLOSED -> OPEN after %d failures",
                        self.key,
                        self._failure_count,
                    )
                    self._state = CircuitState.OPEN

            elif self._state == CircuitState.HALF_OPEN:
                logger.warning("Circuit breaker %s HALF_OPEN -> OPEN due to failure", self.key)
                self._state = CircuitState.OPEN
                self._half_open_calls = 0
                self._success_count = 0

            else:
                # OPEN: the open clock restarts from this failure
                self._success_count = 0

    async def release(self) -> None:
        """
        Give back the HALF_OPEN probe slot taken by ``try_admit()`` without
        recording an outcome (the probe was cancelled or failed before any
        attempt finished). Only the holder of the slot may call this.
        """
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN and self._half_open_calls > 0:
                self._half_open_calls -= 1

    async def get_state(self) -> CircuitState:
        async with self._lock:
            self._check_state_transition()
            return self._state

    async def get_stats(self) -> dict:
        """
        Snapshot of the breaker.

        Returns:
            Dictionary with state, counters, last failure time and config
        """
        async with self._lock:
            self._check_state_transition()
            return {
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "half_open_calls": self._half_open_calls,
                "last_failure_time": self._last_failure_time,
                "config": self._config.to_dict(),
            }

    def recovery_time(self) -> Optional[float]:
        """Unix time at which an OPEN circuit becomes HALF_OPEN."""
        if self._last_failure_time is None:
            return None
        return self._last_failure_time + self._config.open_timeout

    async def reset(self) -> None:
        """Manually reset to CLOSED with zeroed counters."""
        async with self._lock:
            self._reset()

    def _reset(self) -> None:
        """Internal reset (must be called with lock)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._half_open_calls = 0
        self._last_failure_time = None

    def _check_state_transition(self) -> None:
        """OPEN -> HALF_OPEN after open_timeout (must be called with lock)."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            elapsed = time.time() - self._last_failure_time

            if elapsed >= self._config.open_timeout:
                logger.info(
                    "Circuit breaker %s OPEN -> HALF_OPEN after %.1fs",
                    self.key,
                    elapsed,
                )
                self._state = CircuitState.HALF_OPEN
                self._half_open_calls = 0
                self._success_count = 0


def make_endpoint_key(url: str, strategy: EndpointKeyStrategy = EndpointKeyStrategy.URL) -> str:
    """
    Build the circuit key for a URL.

    Examples:
        >>> make_endpoint_key("https://api.example.com/users?page=2")
        'https://api.example.com/users?page=2'
        >>> make_endpoint_key("https://API.example.com/users?page=2", EndpointKeyStrategy.HOST_PATH)
        'https://api.example.com/users'
        >>> make_endpoint_key("https://api.example.com/users", EndpointKeyStrategy.HOST)
        'https://api.example.com'
    """
    if strategy == EndpointKeyStrategy.URL:
        return url

    parts = urlsplit(url)
    if not parts.netloc:
        # Relative URL: only the path can be normalized
        path = parts.path
        return path if strategy == EndpointKeyStrategy.HOST_PATH else ""

    netloc = parts.netloc.lower()
    if strategy == EndpointKeyStrategy.HOST:
        return urlunsplit((parts.scheme.lower(), netloc, "", "", ""))
    return urlunsplit((parts.scheme.lower(), netloc, parts.path, "", ""))


class CircuitBreakerRegistry:
    """
    Owns one AsyncCircuitBreaker per endpoint key.

    Breakers are created lazily on first use and never removed. The dict is
    only touched synchronously, so lookup-or-create needs no lock; each
    breaker serializes its own updates.

    Example:
        >>> registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=2))
        >>> key = registry.key_for("https://api.example.com/orders")
        >>> await registry.record_failure(key)
        >>> (await registry.stats(key))["failure_count"]
        1
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        key_strategy: EndpointKeyStrategy = EndpointKeyStrategy.URL,
    ):
        self._config = config or CircuitBreakerConfig()
        self._key_strategy = key_strategy
        self._breakers: Dict[str, AsyncCircuitBreaker] = {}

    def key_for(self, url: str) -> str:
        return make_endpoint_key(url, self._key_strategy)

    def get(self, key: str) -> AsyncCircuitBreaker:
        """Look up or lazily create the breaker for ``key``."""
        breaker = self._breakers.get(key)
        if breaker is None:
            breaker = AsyncCircuitBreaker(key, self._config)
            self._breakers[key] = breaker
        return breaker

    async def admit(self, key: str) -> bool:
        return await self.get(key).admit()

    async def record_success(self, key: str) -> None:
        await self.get(key).record_success()

    async def record_failure(self, key: str) -> None:
        await self.get(key).record_failure()

    async def stats(self, key: str) -> dict:
        return await self.get(key).get_stats()

    async def all_stats(self) -> Dict[str, dict]:
        """Stats for every tracked endpoint."""
        return {key: await breaker.get_stats() for key, breaker in list(self._breakers.items())}

    async def reset_all(self) -> None:
        """Return every tracked circuit to CLOSED with zeroed counters."""
        for breaker in list(self._breakers.values()):
            await breaker.reset()
        logger.info("All circuit breakers reset (%d)", len(self._breakers))

    def __contains__(self, key: str) -> bool:
        return key in self._breakers

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._breakers))

    def __len__(self) -> int:
        return len(self._breakers)
