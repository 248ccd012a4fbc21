"""
Транспорты: одна попытка = один HTTP запрос.

Транспорт возвращает TransportResponse для любого HTTP статуса и бросает
исключение только при сетевой ошибке (соединение, таймаут, прокси).
Классификация ошибок выполняется в classifier.py.
"""

import asyncio
import functools
import threading
import time
from collections import OrderedDict
from typing import Dict, List, Optional, Protocol, runtime_checkable

import httpx
import requests

from .models import TransportRequest, TransportResponse


@runtime_checkable
class Transport(Protocol):
    """Контракт транспорта, который использует Network."""

    async def send(self, request: TransportRequest) -> TransportResponse: ...


class HTTPXTransport:
    """
    Транспорт на базе httpx.AsyncClient.

    httpx привязывает прокси к клиенту, поэтому держим по одному клиенту
    на каждый прокси URL (и один для прямых запросов). Клиенты создаются
    лениво; хранится не больше ``max_clients`` (LRU). Вытесненный клиент
    закрывается, как только на нём не остаётся запросов в полёте.

    Example:
        >>> transport = HTTPXTransport(limits=httpx.Limits(max_connections=50))
        >>> response = await transport.send(TransportRequest("https://httpbin.org/get"))
        >>> await transport.aclose()
    """

    def __init__(
        self,
        verify: bool = True,
        follow_redirects: bool = True,
        limits: Optional[httpx.Limits] = None,
        max_clients: int = 32,
    ):
        if max_clients < 1:
            raise ValueError("max_clients must be >= 1")
        self._verify = verify
        self._follow_redirects = follow_redirects
        self._limits = limits or httpx.Limits(max_connections=100, max_keepalive_connections=20)
        self._max_clients = max_clients
        self._clients: "OrderedDict[Optional[str], httpx.AsyncClient]" = OrderedDict()
        self._in_flight: Dict[int, int] = {}
        self._evicted: Dict[int, httpx.AsyncClient] = {}

    def _get_client(self, proxy: Optional[str]) -> httpx.AsyncClient:
        """Получить или создать клиент для прокси."""
        client = self._clients.get(proxy)
        if client is not None:
            self._clients.move_to_end(proxy)
            return client

        client_kwargs = {
            "verify": self._verify,
            "follow_redirects": self._follow_redirects,
            "limits": self._limits,
        }
        # Добавляем proxy только если он указан
        if proxy:
            client_kwargs["proxy"] = proxy
        client = httpx.AsyncClient(**client_kwargs)
        self._clients[proxy] = client

        while len(self._clients) > self._max_clients:
            _, old = self._clients.popitem(last=False)
            self._evicted[id(old)] = old
        return client

    async def _close_idle_evicted(self) -> None:
        idle = [c for key, c in self._evicted.items() if not self._in_flight.get(key)]
        for client in idle:
            del self._evicted[id(client)]
            await client.aclose()

    async def send(self, request: TransportRequest) -> TransportResponse:
        client = self._get_client(request.proxy)
        key = id(client)
        self._in_flight[key] = self._in_flight.get(key, 0) + 1
        try:
            start = time.perf_counter()
            response = await client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=httpx.Timeout(request.timeout),
            )
        finally:
            remaining = self._in_flight[key] - 1
            if remaining:
                self._in_flight[key] = remaining
            else:
                del self._in_flight[key]
            await self._close_idle_evicted()

        return TransportResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.text,
            duration=time.perf_counter() - start,
            url=str(response.url),
            reason=response.reason_phrase,
        )

    @property
    def client_count(self) -> int:
        """Клиенты в кэше (без вытесненных, ждущих закрытия)."""
        return len(self._clients)

    async def aclose(self) -> None:
        """Закрыть все клиенты."""
        clients = list(self._clients.values()) + list(self._evicted.values())
        self._clients.clear()
        self._evicted.clear()
        for client in clients:
            await client.aclose()


class RequestsTransport:
    """
    Транспорт на базе requests для окружений, где нужен именно requests.

    Синхронный вызов выполняется в thread pool через run_in_executor.
    Каждый поток получает свою requests.Session (Session не потокобезопасна),
    прокси передаётся на уровне запроса.

    Example:
        >>> network = Network(config, transport=RequestsTransport())
    """

    def __init__(self, verify: bool = True, allow_redirects: bool = True):
        self._verify = verify
        self._allow_redirects = allow_redirects
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def _get_session(self) -> requests.Session:
        """Thread-local сессия, создаётся лениво."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.verify = self._verify
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def _send_sync(self, request: TransportRequest) -> TransportResponse:
        session = self._get_session()
        proxies = {"http": request.proxy, "https": request.proxy} if request.proxy else None
        start = time.perf_counter()
        response = session.request(
            request.method,
            request.url,
            headers=request.headers,
            data=request.body,
            timeout=request.timeout,
            proxies=proxies,
            allow_redirects=self._allow_redirects,
        )
        return TransportResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.text,
            duration=time.perf_counter() - start,
            url=response.url,
            reason=response.reason or "",
        )

    async def send(self, request: TransportRequest) -> TransportResponse:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(self._send_sync, request))

    async def aclose(self) -> None:
        """Закрыть все сессии из всех потоков."""
        with self._sessions_lock:
            sessions = list(self._sessions)
            self._sessions.clear()
        for session in sessions:
            session.close()
        self._local = threading.local()
