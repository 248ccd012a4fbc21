"""
Network: устойчивый HTTP оркестратор.

Поток одного запроса:
1. Rate limiting (если настроен) - отказ до первой попытки
2. Circuit breaker для endpoint'а - fail fast, если circuit открыт
3. Retry с exponential backoff, на каждой попытке новый прокси (если есть пул)
4. Классификация ошибок: решает и про retry, и про то, виноват ли прокси
5. Успех/неудача записываются в circuit breaker
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import urljoin, urlsplit

from .core.circuit_breaker import CircuitBreakerRegistry
from .core.classifier import classify
from .core.config import NetworkConfig
from .core.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    RateLimitExceeded,
    RetriesExhaustedError,
)
from .core.logging import NetworkLogger, reset_correlation_id, set_correlation_id
from .core.models import ALLOWED_METHODS, RequestResult, TransportRequest, TransportResponse
from .core.proxy import ProxyRotationPolicy, maybe_await, to_transport_proxy
from .core.rate_limit import RateLimitContext
from .core.retry_engine import AttemptResult, RetryCoordinator
from .core.stats import NetworkStats, StatsAggregator
from .core.transport import HTTPXTransport
from .utils.sanitizer import mask_sensitive_data, mask_url
from .utils.serialization import Body, parse_body, serialize_body

logger = logging.getLogger(__name__)

try:
    VERSION = version("resilient-network")
except PackageNotFoundError:
    # Пакет не установлен (режим разработки)
    VERSION = "0.0.0-dev"

UNIT_ID = "network"
DEFAULT_LOCAL_BASE = "http://localhost"


class Network:
    """
    Устойчивый HTTP клиент: circuit breaker на endpoint, retry,
    опциональные rate limiter и ротация прокси.

    Args:
        config: NetworkConfig (по умолчанию NetworkConfig())
        transport: Объект с ``async send(TransportRequest)``; по умолчанию
            HTTPXTransport, который Network закрывает в close()
        proxy_pool: Пул прокси (ProxyPoolProtocol), опционально
        rate_limiter: Rate limiter (RateLimiterProtocol), опционально
        logger: Объект с debug/info/warning/error(message, **fields);
            по умолчанию NetworkLogger, если задан config.logging
        sleep: Корутина ожидания между попытками (подменяется в тестах)

    Example:
        >>> async with Network(NetworkConfig(base_url="https://httpbin.org")) as network:
        ...     result = await network.request("/json")
        ...     print(result.response.status, result.parsed)
    """

    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        *,
        transport: Optional[Any] = None,
        proxy_pool: Optional[Any] = None,
        rate_limiter: Optional[Any] = None,
        logger: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or NetworkConfig()

        self._owns_transport = transport is None
        self._transport = transport if transport is not None else HTTPXTransport()

        self._owns_logger = False
        if logger is None and self.config.logging is not None:
            logger = NetworkLogger(self.config.logging)
            self._owns_logger = True
        self._logger = logger

        self._circuits = CircuitBreakerRegistry(
            self.config.circuit_breaker, self.config.key_strategy
        )
        self._retry = RetryCoordinator(self.config.retry, sleep=sleep)
        self._proxies = ProxyRotationPolicy(proxy_pool)
        self._rate_limiter = rate_limiter
        self._stats = StatsAggregator(
            self._circuits, self._retry, self._proxies, rate_limiter
        )
        self._closed = False

    @classmethod
    def create(
        cls,
        *,
        transport: Optional[Any] = None,
        proxy_pool: Optional[Any] = None,
        rate_limiter: Optional[Any] = None,
        logger: Optional[Any] = None,
        **config_kwargs: Any,
    ) -> 'Network':
        """
        Network с NetworkConfig.create(**config_kwargs).

        Example:
            >>> network = Network.create(base_url="https://api.example.com",
            ...                          failure_threshold=3, proxy_pool=pool)
        """
        return cls(
            NetworkConfig.create(**config_kwargs),
            transport=transport,
            proxy_pool=proxy_pool,
            rate_limiter=rate_limiter,
            logger=logger,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **kwargs: Any) -> 'Network':
        """
        Network с конфигом из RESILIENT_NETWORK_* переменных окружения.

        Args:
            env_file: Путь к .env файлу
            **kwargs: transport / proxy_pool / rate_limiter / logger
        """
        from .core.env_config import load_from_env

        return cls(load_from_env(env_file=env_file), **kwargs)

    # ==================== Логирование ====================

    def _emit(self, level: str, message: str, **fields: Any) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(message, **fields)
        else:
            logger.log(getattr(logging, level.upper()), message, extra=mask_sensitive_data(fields))

    # ==================== Запрос ====================

    async def request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        body: Body = None,
        timeout: Optional[float] = None,
    ) -> RequestResult:
        """
        Выполнить HTTP запрос с защитой.

        Args:
            url: Абсолютный URL или путь относительно base_url
            method: GET, POST, PUT, DELETE, PATCH
            headers: Заголовки поверх default_headers
            body: str/bytes как есть, dict/list сериализуются в JSON
            timeout: Таймаут одной попытки (сек), по умолчанию config.timeout

        Returns:
            RequestResult

        Raises:
            ConfigurationError: Неверный метод, тело или таймаут
            RateLimitExceeded: Rate limiter отклонил запрос
            CircuitOpenError: Circuit открыт и пула прокси нет
            RetriesExhaustedError: Все попытки завершились ошибкой
        """
        method = (method or "").upper()
        if method not in ALLOWED_METHODS:
            raise ConfigurationError(
                f"Unsupported HTTP method: {method!r}. "
                f"Allowed: {', '.join(sorted(ALLOWED_METHODS))}",
                url,
            )

        request_timeout = self.config.timeout if timeout is None else timeout
        if request_timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {request_timeout}", url)

        merged_headers: Dict[str, str] = dict(self.config.default_headers)
        if headers:
            merged_headers.update(headers)
        try:
            payload, merged_headers = serialize_body(body, merged_headers)
        except TypeError as e:
            raise ConfigurationError(str(e), url) from e

        request_id = str(uuid.uuid4())
        token = set_correlation_id(request_id)
        try:
            return await self._execute(
                url, method, merged_headers, payload, request_timeout, request_id
            )
        finally:
            reset_correlation_id(token)

    async def _execute(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        payload: Any,
        request_timeout: float,
        request_id: str,
    ) -> RequestResult:
        full_url = self._resolve_url(url)

        # 1. Rate limiting
        if self._rate_limiter is not None:
            await self._check_rate_limit(url, full_url, method)

        # 2-3. Circuit breaker
        circuit_key = self._circuits.key_for(url)
        breaker = self._circuits.get(circuit_key)

        admission = await breaker.try_admit()
        if not admission.allowed:
            if not self._proxies.enabled:
                stats = await breaker.get_stats()
                self._emit("warning", "Circuit open, request blocked",
                           url=mask_url(url), circuit=circuit_key)
                raise CircuitOpenError(
                    url,
                    circuit_key,
                    failure_count=stats["failure_count"],
                    recovery_time=breaker.recovery_time(),
                )
            self._emit("info", "Circuit open, trying through proxy rotation",
                       url=mask_url(url), circuit=circuit_key)

        # 4. Retry
        async def attempt(index: int) -> AttemptResult:
            connection = await self._proxies.acquire()
            try:
                proxy_url = to_transport_proxy(connection) if connection is not None else None
            except ConfigurationError:
                await self._proxies.discard(connection)
                raise

            transport_request = TransportRequest(
                url=full_url,
                method=method,
                headers=dict(headers),
                body=payload,
                timeout=request_timeout,
                proxy=proxy_url,
            )

            try:
                response: TransportResponse = await asyncio.wait_for(
                    self._transport.send(transport_request), timeout=request_timeout
                )
            except Exception as e:
                error = classify(e)
            else:
                error = classify(
                    status=response.status,
                    headers=response.headers,
                    message=f"HTTP {response.status} {response.reason}".strip(),
                )
                if error.is_success:
                    return AttemptResult.ok((response, connection))

            self._emit(
                "warning",
                "Attempt failed",
                attempt=index,
                kind=error.kind.value,
                status=error.status_code,
                error=error.message,
                proxy=getattr(connection, "id", None),
            )
            await self._proxies.report_failure(connection, error)
            return AttemptResult.failed(error)

        try:
            outcome = await self._retry.run(attempt, self.config.retry)
        except BaseException:
            # Отмена или ошибка конфигурации прокси: слот пробы занят этим запросом
            if admission.probe:
                await breaker.release()
            raise

        # 5. Успех
        if outcome.is_ok:
            response, connection = outcome.result.value
            await breaker.record_success()
            await self._proxies.report_success(connection, response.duration)

            self._emit(
                "info",
                "Request succeeded",
                method=method,
                url=mask_url(full_url),
                status=response.status,
                duration=round(response.duration, 4),
                attempts=len(outcome.attempts),
            )
            return RequestResult(
                response=response,
                parsed=parse_body(response.body, response.headers),
                request_id=request_id,
            )

        # 6. Неудача
        await breaker.record_failure()
        last_error = outcome.result.error
        self._emit(
            "error",
            "Request failed",
            method=method,
            url=mask_url(full_url),
            attempts=len(outcome.attempts),
            kind=last_error.kind.value,
            status=last_error.status_code,
        )
        raise RetriesExhaustedError(
            url,
            attempts=len(outcome.attempts),
            last_error=last_error,
            attempt_log=outcome.attempts,
        )

    async def _check_rate_limit(self, url: str, full_url: str, method: str) -> None:
        key = urlsplit(full_url).hostname or "localhost"
        context = RateLimitContext(key=key, url=full_url, metadata={"method": method})
        decision = await maybe_await(self._rate_limiter.check(context))

        if not decision.allowed:
            self._emit("warning", "Rate limit exceeded", key=key,
                       retry_after=decision.retry_after)
            raise RateLimitExceeded(
                url,
                key,
                retry_after=decision.retry_after,
                remaining=decision.remaining,
            )

    def _resolve_url(self, url: str) -> str:
        """Absolute URL for the transport (relative paths join base_url)."""
        if urlsplit(url).scheme:
            return url
        base = self.config.base_url or DEFAULT_LOCAL_BASE
        return urljoin(base + "/", url.lstrip("/"))

    # ==================== HTTP методы ====================

    async def get(self, url: str, **kwargs: Any) -> RequestResult:
        return await self.request(url, "GET", **kwargs)

    async def post(self, url: str, body: Body = None, **kwargs: Any) -> RequestResult:
        return await self.request(url, "POST", body=body, **kwargs)

    async def put(self, url: str, body: Body = None, **kwargs: Any) -> RequestResult:
        return await self.request(url, "PUT", body=body, **kwargs)

    async def patch(self, url: str, body: Body = None, **kwargs: Any) -> RequestResult:
        return await self.request(url, "PATCH", body=body, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> RequestResult:
        return await self.request(url, "DELETE", **kwargs)

    # ==================== Статистика ====================

    async def get_circuit_stats(self) -> Dict[str, dict]:
        """Статистика circuit breaker'а по каждому endpoint'у."""
        return await self._circuits.all_stats()

    async def reset_circuits(self) -> None:
        """Вернуть все circuit'ы в CLOSED с нулевыми счётчиками."""
        await self._circuits.reset_all()

    def get_retry_stats(self) -> Dict[str, Any]:
        return self._retry.get_stats().to_dict()

    async def get_rate_limit_stats(self) -> Optional[Dict[str, Any]]:
        """Статистика rate limiter'а или None, если он не настроен."""
        return await self._stats.rate_limit_stats()

    async def get_proxy_stats(self) -> Optional[Dict[str, Any]]:
        """Статистика пула прокси или None, если пула нет."""
        return await self._proxies.get_stats()

    async def get_stats(self) -> NetworkStats:
        return await self._stats.snapshot()

    async def to_json(self) -> str:
        """
        Состояние Network в JSON для логов и отладки.

        Секреты в заголовках и URL маскируются.
        """
        stats = await self.get_stats()
        data = {
            "unit_id": UNIT_ID,
            "version": VERSION,
            "config": {
                "base_url": mask_url(self.config.base_url) if self.config.base_url else None,
                "timeout": self.config.timeout,
                "default_headers": mask_sensitive_data(dict(self.config.default_headers)),
                "key_strategy": self.config.key_strategy.value,
                "circuit_breaker": self.config.circuit_breaker.to_dict(),
                "retry": self.config.retry.to_dict(),
            },
            "stats": stats.to_dict(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        return json.dumps(data, indent=2, default=str)

    def whoami(self) -> str:
        """
        Короткое описание текущего состояния.

        Example:
            >>> network.whoami()
            'Network[2 circuits, 3 retries + Rate Limiter] v1.0.0'
        """
        extras = ""
        if self._rate_limiter is not None:
            extras += " + Rate Limiter"
        if self._proxies.enabled:
            extras += " + Proxy Pool"
        retries = self._retry.get_stats().total_retries
        return f"Network[{len(self._circuits)} circuits, {retries} retries{extras}] v{VERSION}"

    def help(self) -> str:
        """Краткая справка по использованию."""
        return f"""
Network v{VERSION} - resilient HTTP: circuit breaker + retry + optional rate limiting and proxy rotation

Main method:
  await network.request(url, method="GET", headers=None, body=None, timeout=None)
  shortcuts: get / post / put / patch / delete

Request flow:
  1. Rate limit check (if a rate limiter is configured)
  2. Circuit breaker check (per endpoint key: {self.config.key_strategy.value})
  3. Attempts with exponential backoff, a fresh proxy per attempt (if a pool is configured)
  4. Outcome recorded on the circuit breaker

Options:
  method   GET | POST | PUT | DELETE | PATCH
  headers  merged over default headers
  body     str / bytes as is, dict / list sent as JSON
  timeout  per-attempt timeout in seconds (default {self.config.timeout})

Errors:
  RateLimitExceeded      rejected before any attempt (see retry_after)
  CircuitOpenError       endpoint isolated and no proxy pool to probe through
  RetriesExhaustedError  every attempt failed or the error is not retryable

Configuration:
  Network.create(base_url="https://api.example.com", failure_threshold=3, max_attempts=5)
  Network(config, rate_limiter=SlidingWindowRateLimiter(100, 60.0), proxy_pool=ProxyPool())
  Network.from_env()  # RESILIENT_NETWORK_* variables

Introspection:
  whoami(), await get_stats(), await get_circuit_stats(), get_retry_stats(),
  await get_rate_limit_stats(), await get_proxy_stats(), await to_json()
"""

    # ==================== Жизненный цикл ====================

    async def close(self) -> None:
        """Закрыть транспорт и логгер, если Network их создал. Идемпотентно."""
        if self._closed:
            return
        self._closed = True
        if self._owns_transport:
            await self._transport.aclose()
        if self._owns_logger:
            self._logger.close()

    async def __aenter__(self) -> 'Network':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Network(base_url={self.config.base_url!r}, circuits={len(self._circuits)})"
