"""
Классификация ошибок транспорта.

Единая таблица решений, которой пользуются и RetryCoordinator
(``retryable``), и ProxyRotationPolicy (``blames_proxy``):

    kind                    retryable   blames_proxy
    CONNECTION_ERROR        yes         yes
    PROXY_AUTH_ERROR        yes         yes
    SERVER_ERROR            yes         no
    RATE_LIMITED_UPSTREAM   yes         no
    CLIENT_ERROR            no          no
    SUCCESS                 -           no
    UNKNOWN                 no          no
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx
import requests

logger = logging.getLogger(__name__)

MAX_RETRY_AFTER_HEADER_LENGTH = 100
MAX_RETRY_AFTER_SECONDS = 86400 * 365

PROXY_AUTH_MARKERS = (
    "407",
    "proxy authentication",
    "proxy-authenticate",
    "proxy auth",
    "tunnel connection failed: 407",
)


class ErrorKind(str, Enum):
    """Категории ошибок."""
    CONNECTION_ERROR = "connection_error"
    PROXY_AUTH_ERROR = "proxy_auth_error"
    SERVER_ERROR = "server_error"
    RATE_LIMITED_UPSTREAM = "rate_limited_upstream"
    CLIENT_ERROR = "client_error"
    SUCCESS = "success"
    UNKNOWN = "unknown"


_POLICY = {
    ErrorKind.CONNECTION_ERROR: (True, True),
    ErrorKind.PROXY_AUTH_ERROR: (True, True),
    ErrorKind.SERVER_ERROR: (True, False),
    ErrorKind.RATE_LIMITED_UPSTREAM: (True, False),
    ErrorKind.CLIENT_ERROR: (False, False),
    ErrorKind.SUCCESS: (False, False),
    ErrorKind.UNKNOWN: (False, False),
}


@dataclass(frozen=True)
class ClassifiedError:
    """
    Результат классификации одной неудачной (или успешной) попытки.

    Attributes:
        kind: Категория из ErrorKind
        retryable: Можно ли повторить попытку
        blames_proxy: Виноват ли прокси (нужно ли сообщить пулу)
        status_code: HTTP статус, если был получен ответ
        message: Человекочитаемое описание
        retry_after: Подсказка сервера (сек) из Retry-After, если есть
        exception: Исходное исключение транспорта, если было
    """
    kind: ErrorKind
    retryable: bool
    blames_proxy: bool
    status_code: Optional[int] = None
    message: str = ""
    retry_after: Optional[float] = None
    exception: Optional[BaseException] = None

    @classmethod
    def of(cls, kind: ErrorKind, **kwargs: Any) -> 'ClassifiedError':
        retryable, blames_proxy = _POLICY[kind]
        return cls(kind=kind, retryable=retryable, blames_proxy=blames_proxy, **kwargs)

    @property
    def is_success(self) -> bool:
        return self.kind is ErrorKind.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "retryable": self.retryable,
            "blames_proxy": self.blames_proxy,
            "status_code": self.status_code,
            "message": self.message,
            "retry_after": self.retry_after,
        }

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.kind.value} (HTTP {self.status_code}): {self.message}"
        return f"{self.kind.value}: {self.message}"


def classify(
    error: Optional[BaseException] = None,
    *,
    status: Optional[int] = None,
    headers: Optional[Mapping[str, str]] = None,
    message: str = "",
) -> ClassifiedError:
    """
    Классифицировать исключение транспорта или HTTP статус.

    Args:
        error: Исключение транспорта (приоритетнее статуса)
        status: HTTP статус ответа
        headers: Заголовки ответа (для Retry-After)
        message: Дополнительное сообщение

    Returns:
        ClassifiedError

    Examples:
        >>> classify(status=503).retryable
        True
        >>> classify(httpx.ConnectError("refused")).blames_proxy
        True
    """
    if error is not None:
        return classify_exception(error)
    if status is not None:
        return classify_status(status, headers=headers, message=message)
    raise ValueError("classify() needs an error or a status")


def classify_status(
    status: int,
    headers: Optional[Mapping[str, str]] = None,
    message: str = "",
) -> ClassifiedError:
    """Классификация по HTTP статусу."""
    text = message or f"HTTP {status}"

    if 200 <= status < 400:
        return ClassifiedError.of(ErrorKind.SUCCESS, status_code=status, message=text)

    if status == 407:
        return ClassifiedError.of(ErrorKind.PROXY_AUTH_ERROR, status_code=status, message=text)

    if status == 429:
        retry_after = parse_retry_after(headers) if headers is not None else None
        return ClassifiedError.of(
            ErrorKind.RATE_LIMITED_UPSTREAM,
            status_code=status,
            message=text,
            retry_after=retry_after,
        )

    if 400 <= status < 500:
        return ClassifiedError.of(ErrorKind.CLIENT_ERROR, status_code=status, message=text)

    if 500 <= status < 600:
        return ClassifiedError.of(ErrorKind.SERVER_ERROR, status_code=status, message=text)

    return ClassifiedError.of(ErrorKind.UNKNOWN, status_code=status, message=text)


def classify_exception(exc: BaseException) -> ClassifiedError:
    """
    Конвертировать исключения httpx / requests / asyncio в ClassifiedError.

    Порядок проверок важен: ProxyError в обеих библиотеках является
    подклассом сетевых ошибок, ConnectTimeout в requests наследует и
    ConnectionError, и Timeout.
    """
    text = str(exc) or type(exc).__name__

    # Прокси
    if isinstance(exc, (httpx.ProxyError, requests.exceptions.ProxyError)):
        if _looks_like_proxy_auth(text):
            return ClassifiedError.of(ErrorKind.PROXY_AUTH_ERROR, message=text, exception=exc)
        return ClassifiedError.of(ErrorKind.CONNECTION_ERROR, message=text, exception=exc)

    # Таймауты
    if isinstance(exc, (httpx.TimeoutException, requests.exceptions.Timeout, asyncio.TimeoutError)):
        return ClassifiedError.of(
            ErrorKind.CONNECTION_ERROR, message=f"Timeout: {text}", exception=exc
        )

    # Сетевые ошибки
    if isinstance(exc, (httpx.TransportError, requests.exceptions.ConnectionError)):
        if _looks_like_proxy_auth(text):
            return ClassifiedError.of(ErrorKind.PROXY_AUTH_ERROR, message=text, exception=exc)
        return ClassifiedError.of(ErrorKind.CONNECTION_ERROR, message=text, exception=exc)

    # HTTP ошибки, поднятые через raise_for_status()
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return classify_status(response.status_code, headers=response.headers, message=text)

    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        response = exc.response
        return classify_status(response.status_code, headers=response.headers, message=text)

    # Остальные RequestException (InvalidURL и т.п.) наследуют IOError,
    # поэтому отсекаются до проверки OSError
    if isinstance(exc, requests.exceptions.RequestException):
        return ClassifiedError.of(ErrorKind.UNKNOWN, message=text, exception=exc)

    # Стандартные ConnectionRefusedError, socket.gaierror и т.д.
    if isinstance(exc, OSError):
        return ClassifiedError.of(ErrorKind.CONNECTION_ERROR, message=text, exception=exc)

    return ClassifiedError.of(ErrorKind.UNKNOWN, message=text, exception=exc)


def _looks_like_proxy_auth(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in PROXY_AUTH_MARKERS)


def parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """
    Распарсить Retry-After header с валидацией против malicious input.

    Args:
        headers: Заголовки ответа

    Returns:
        Секунды или None

    Security:
        - Ограничивает длину header для защиты от DoS
        - Безопасно обрабатывает malformed input
    """
    retry_after = _get_header(headers, 'Retry-After')
    if not retry_after:
        return None

    if len(retry_after) > MAX_RETRY_AFTER_HEADER_LENGTH:
        logger.warning(
            "Retry-After header too long (%d chars), ignoring", len(retry_after)
        )
        return None

    try:
        seconds = float(retry_after)
    except ValueError:
        try:
            retry_date = parsedate_to_datetime(retry_after)
        except (ValueError, TypeError, OverflowError, IndexError) as e:
            logger.debug("Failed to parse Retry-After header %r: %s", retry_after, e)
            return None
        if retry_date.tzinfo is None:
            retry_date = retry_date.replace(tzinfo=timezone.utc)
        delta = (retry_date - datetime.now(timezone.utc)).total_seconds()
        return max(0.0, delta)

    if not math.isfinite(seconds) or seconds < 0 or seconds > MAX_RETRY_AFTER_SECONDS:
        logger.warning("Retry-After seconds value out of reasonable range: %s", seconds)
        return None
    return seconds


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # httpx.Headers и requests CaseInsensitiveDict регистронезависимы, dict - нет
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, val in headers.items():
        if key.lower() == lowered:
            return val
    return None
