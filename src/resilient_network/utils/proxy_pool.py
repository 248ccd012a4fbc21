"""
Менеджер пула прокси с ротацией и исключением сбойных прокси.

Поддерживает:
- Различные типы прокси (HTTP, HTTPS, SOCKS4, SOCKS5)
- Ротацию прокси (round-robin, random, weighted)
- Cooldown для прокси после ошибки
- Автоматическое удаление неработающих прокси
- Статистику использования

Реализует ProxyPoolProtocol, который ожидает Network.
"""

import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional

from ..core.proxy import ProxyConnection

ProxyType = Literal["http", "https", "socks4", "socks5"]
RotationStrategy = Literal["round_robin", "random", "weighted"]


@dataclass
class ProxyInfo:
    """Прокси в пуле и его метрики."""

    host: str
    port: int
    proxy_type: ProxyType = "http"
    username: Optional[str] = None
    password: Optional[str] = None
    country: Optional[str] = None

    # Метрики
    success_count: int = 0
    failure_count: int = 0
    total_response_time: float = 0.0
    last_used: Optional[float] = None
    last_failure: Optional[float] = None
    is_working: bool = True

    def __post_init__(self):
        """Валидация после инициализации"""
        if not self.host:
            raise ValueError("Proxy host cannot be empty")
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Invalid port: {self.port}")

    @property
    def id(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def success_rate(self) -> float:
        """Процент успешных запросов (0.0 - 1.0)"""
        total = self.success_count + self.failure_count
        if total == 0:
            return 1.0  # Новый прокси считается рабочим
        return self.success_count / total

    @property
    def average_response_time(self) -> float:
        """Среднее время ответа в секундах"""
        if self.success_count == 0:
            return 0.0
        return self.total_response_time / self.success_count

    def to_connection(self) -> ProxyConnection:
        return ProxyConnection(
            id=self.id,
            host=self.host,
            port=self.port,
            protocol=self.proxy_type,
            username=self.username,
            password=self.password,
            country=self.country,
        )

    def record_success(self, response_time: float):
        self.success_count += 1
        self.total_response_time += response_time
        self.last_used = time.time()
        self.is_working = True

    def record_failure(self, min_success_rate: float):
        self.failure_count += 1
        self.last_used = time.time()
        self.last_failure = self.last_used

        # Помечаем как неработающий если слишком много ошибок
        if self.success_rate < min_success_rate and (self.success_count + self.failure_count) >= 5:
            self.is_working = False

    def __repr__(self) -> str:
        return (
            f"ProxyInfo({self.proxy_type}://{self.host}:{self.port}, "
            f"success_rate={self.success_rate:.2f}, "
            f"is_working={self.is_working})"
        )


class ProxyPool:
    """
    Потокобезопасный пул прокси.

    Прокси, помеченный ошибкой, не выдаётся в течение ``failure_cooldown``
    секунд, поэтому следующая попытка получает другой прокси.

    Example:
        >>> pool = ProxyPool()
        >>> pool.add_proxy("proxy1.example.com", 8080)
        >>> pool.add_proxy("proxy2.example.com", 1080, proxy_type="socks5", username="u", password="p")
        >>> network = Network.create(proxy_pool=pool)
    """

    def __init__(
            self,
            rotation_strategy: RotationStrategy = "round_robin",
            min_success_rate: float = 0.3,
            auto_remove_failed: bool = True,
            failure_cooldown: float = 30.0,
    ):
        """
        Args:
            rotation_strategy: Стратегия ротации прокси
            min_success_rate: Минимальный success_rate для использования (0.0-1.0)
            auto_remove_failed: Автоматически удалять неработающие прокси
            failure_cooldown: Сколько секунд не выдавать прокси после ошибки
        """
        if rotation_strategy not in ("round_robin", "random", "weighted"):
            raise ValueError(f"Unknown rotation strategy: {rotation_strategy}")

        self._proxies: List[ProxyInfo] = []
        self._rotation_strategy = rotation_strategy
        self._min_success_rate = min_success_rate
        self._auto_remove_failed = auto_remove_failed
        self._failure_cooldown = failure_cooldown
        self._lock = threading.Lock()

        self._current_index = 0
        self._total_acquired = 0
        self._total_successes = 0
        self._total_failures = 0

    # ==================== Управление прокси ====================

    def add_proxy(
            self,
            host: str,
            port: int,
            proxy_type: ProxyType = "http",
            username: Optional[str] = None,
            password: Optional[str] = None,
            country: Optional[str] = None,
    ) -> ProxyInfo:
        """
        Добавляет прокси в пул.

        Raises:
            ValueError: Если прокси уже существует или невалиден
        """
        proxy = ProxyInfo(
            host=host,
            port=port,
            proxy_type=proxy_type,
            username=username,
            password=password,
            country=country,
        )

        with self._lock:
            if any(p.host == host and p.port == port for p in self._proxies):
                raise ValueError(f"Proxy {host}:{port} already exists in pool")
            self._proxies.append(proxy)
        return proxy

    def add_proxies_from_list(self, proxies: List[str], proxy_type: ProxyType = "http") -> int:
        """
        Добавляет прокси из строк "host:port" или "user:pass@host:port".

        Returns:
            Количество успешно добавленных прокси
        """
        added = 0

        for proxy_str in proxies:
            try:
                if "@" in proxy_str:
                    auth, host_port = proxy_str.rsplit("@", 1)
                    username, password = auth.split(":", 1)
                else:
                    username = password = None
                    host_port = proxy_str
                host, port = host_port.rsplit(":", 1)

                self.add_proxy(
                    host=host.strip(),
                    port=int(port.strip()),
                    proxy_type=proxy_type,
                    username=username,
                    password=password,
                )
                added += 1
            except ValueError:
                # Невалидные строки и дубликаты пропускаем
                continue

        return added

    def remove_proxy(self, host: str, port: int) -> bool:
        with self._lock:
            return self._remove_locked(host, port)

    def _remove_locked(self, host: str, port: int) -> bool:
        for i, proxy in enumerate(self._proxies):
            if proxy.host == host and proxy.port == port:
                self._proxies.pop(i)
                return True
        return False

    def clear(self):
        with self._lock:
            self._proxies.clear()
            self._current_index = 0

    # ==================== ProxyPoolProtocol ====================

    def acquire(self) -> Optional[ProxyConnection]:
        """
        Выдать прокси согласно стратегии ротации.

        Returns:
            ProxyConnection или None если нет доступных прокси
        """
        with self._lock:
            available = self._get_available_proxies()
            if not available:
                return None

            if self._rotation_strategy == "round_robin":
                proxy = available[self._current_index % len(available)]
                self._current_index += 1
            elif self._rotation_strategy == "random":
                proxy = random.choice(available)
            else:
                weights = [p.success_rate for p in available]
                proxy = random.choices(available, weights=weights, k=1)[0]

            proxy.last_used = time.time()
            self._total_acquired += 1
            return proxy.to_connection()

    def report_failure(self, connection: ProxyConnection) -> None:
        """Записывает ошибку прокси и ставит его на cooldown."""
        with self._lock:
            proxy = self._find(connection)
            if proxy is None:
                return
            proxy.record_failure(self._min_success_rate)
            self._total_failures += 1

            if self._auto_remove_failed and not proxy.is_working:
                self._remove_locked(proxy.host, proxy.port)

    def report_success(self, connection: ProxyConnection, response_time: float) -> None:
        with self._lock:
            proxy = self._find(connection)
            if proxy is None:
                return
            proxy.record_success(response_time)
            self._total_successes += 1

    def _find(self, connection: ProxyConnection) -> Optional[ProxyInfo]:
        for proxy in self._proxies:
            if proxy.host == connection.host and proxy.port == connection.port:
                return proxy
        return None

    def _get_available_proxies(self) -> List[ProxyInfo]:
        now = time.time()
        return [
            p for p in self._proxies
            if p.is_working
            and p.success_rate >= self._min_success_rate
            and (p.last_failure is None or now - p.last_failure >= self._failure_cooldown)
        ]

    # ==================== Статистика ====================

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            available = self._get_available_proxies()
            reported = self._total_successes + self._total_failures
            return {
                "total_proxies": len(self._proxies),
                "available_proxies": len(available),
                "working_proxies": sum(1 for p in self._proxies if p.is_working),
                "total_acquired": self._total_acquired,
                "total_successes": self._total_successes,
                "total_failures": self._total_failures,
                "overall_success_rate": (
                    self._total_successes / reported if reported > 0 else 0.0
                ),
                "rotation_strategy": self._rotation_strategy,
            }

    def get_proxy_stats(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {
                    "id": p.id,
                    "type": p.proxy_type,
                    "is_working": p.is_working,
                    "success_rate": p.success_rate,
                    "success_count": p.success_count,
                    "failure_count": p.failure_count,
                    "avg_response_time": p.average_response_time,
                    "last_used": p.last_used,
                    "country": p.country,
                }
                for p in self._proxies
            ]

    def __len__(self) -> int:
        return len(self._proxies)

    def __repr__(self) -> str:
        return (
            f"ProxyPool(total={len(self._proxies)}, "
            f"strategy='{self._rotation_strategy}')"
        )
