"""
Rate limiting gate, checked once per request before any attempt.

The limiter never sleeps: a rejected request fails fast with
RateLimitExceeded and the caller decides whether to wait ``retry_after``.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Expired windows are swept every PRUNE_EVERY checks
PRUNE_EVERY = 256


@dataclass(frozen=True)
class RateLimitContext:
    """
    What the limiter is asked about.

    Attributes:
        key: Limiting key (the target hostname)
        url: Full request URL
        metadata: Free-form extras for custom limiters
    """
    key: str
    url: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RateLimitDecision:
    """Answer of ``check()``; ``retry_after`` is in seconds."""
    allowed: bool
    remaining: int = 0
    retry_after: float = 0.0


@runtime_checkable
class RateLimiterProtocol(Protocol):
    """
    Rate limiter contract. ``check`` and ``get_stats`` may be plain or async.
    """

    def check(self, context: RateLimitContext) -> RateLimitDecision: ...

    def get_stats(self) -> Dict[str, Any]: ...


class SlidingWindowRateLimiter:
    """
    Sliding window limiter: at most ``max_requests`` per ``time_window``
    seconds for each key.

    Example:
        >>> # 1 запрос в секунду на хост
        >>> limiter = SlidingWindowRateLimiter(max_requests=1, time_window=1.0)
        >>> network = Network(config, rate_limiter=limiter)
        >>> await network.request("https://api.example.com/a")  # ok
        >>> await network.request("https://api.example.com/b")  # RateLimitExceeded
    """

    def __init__(self, max_requests: int = 10, time_window: float = 60.0):
        """
        Args:
            max_requests: Максимальное количество запросов в окне
            time_window: Временное окно в секундах
        """
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if time_window <= 0:
            raise ValueError("time_window must be > 0")

        self.max_requests = max_requests
        self.time_window = time_window
        self._windows: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()
        self._allowed = 0
        self._rejected = 0
        self._checks = 0

    def _clean_old_requests(self, window: Deque[float], now: float) -> None:
        while window and (now - window[0]) >= self.time_window:
            window.popleft()

    def _prune_empty(self, now: float) -> None:
        """Drop keys whose window has fully expired (must be called with lock)."""
        for key in [k for k, w in self._windows.items() if not w or now - w[-1] >= self.time_window]:
            del self._windows[key]

    def _reset_time(self, window: Deque[float], now: float) -> float:
        if len(window) < self.max_requests:
            return 0.0
        return max(0.0, self.time_window - (now - window[0]))

    async def check(self, context: RateLimitContext) -> RateLimitDecision:
        """
        Consume one slot for ``context.key`` if one is free.

        Returns:
            RateLimitDecision; when rejected, ``retry_after`` is the time until
            the oldest request in the window expires
        """
        async with self._lock:
            now = time.monotonic()
            self._checks += 1
            if self._checks % PRUNE_EVERY == 0:
                self._prune_empty(now)

            window = self._windows.setdefault(context.key, deque())
            self._clean_old_requests(window, now)

            if len(window) >= self.max_requests:
                self._rejected += 1
                retry_after = self._reset_time(window, now)
                logger.warning(
                    "Rate limit reached for %s, retry in %.2fs", context.key, retry_after
                )
                return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

            window.append(now)
            self._allowed += 1
            return RateLimitDecision(
                allowed=True,
                remaining=self.max_requests - len(window),
            )

    async def get_remaining_requests(self, key: str) -> int:
        async with self._lock:
            window = self._windows.get(key)
            if window is None:
                return self.max_requests
            self._clean_old_requests(window, time.monotonic())
            if not window:
                del self._windows[key]
            return max(0, self.max_requests - len(window))

    async def reset(self, key: Optional[str] = None) -> None:
        """Сбрасывает окно для ключа (или все окна)."""
        async with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)
        logger.info("Rate limit counters reset (%s)", key or "all keys")

    async def get_stats(self) -> Dict[str, Any]:
        """
        Получить статистику rate limiter.

        Returns:
            Dict с лимитами, счётчиками и состоянием окна по каждому ключу
        """
        async with self._lock:
            now = time.monotonic()
            self._prune_empty(now)
            keys = {}
            for key, window in self._windows.items():
                self._clean_old_requests(window, now)
                keys[key] = {
                    "current_requests": len(window),
                    "remaining": max(0, self.max_requests - len(window)),
                    "reset_time": self._reset_time(window, now),
                }
            return {
                "max_requests": self.max_requests,
                "time_window": self.time_window,
                "allowed": self._allowed,
                "rejected": self._rejected,
                "keys": keys,
            }
