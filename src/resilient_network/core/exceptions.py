"""
Иерархия исключений Network.

Вызывающий код видит только итог запроса, а не отдельные попытки:
- RateLimitExceeded - запрос отклонён до первой попытки
- CircuitOpenError - endpoint изолирован, прокси для пробы нет
- RetriesExhaustedError - попытки исчерпаны или ошибка не ретраится
"""

from typing import TYPE_CHECKING, List, Optional

from ..utils.sanitizer import mask_url

if TYPE_CHECKING:
    from .classifier import ClassifiedError
    from .retry_engine import RetryAttempt

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BASE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class NetworkError(Exception):
    """Базовое исключение Network."""

    retryable: bool = False
    fatal: bool = False

    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ADMISSION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RateLimitExceeded(NetworkError):
    """
    Rate limiter отклонил запрос.

    Args:
        url: URL запроса
        key: Ключ rate limiter'а (hostname)
        retry_after: Через сколько секунд можно повторить
        remaining: Остаток бюджета
    """
    retryable = True

    def __init__(
        self,
        url: str,
        key: str,
        retry_after: float = 0.0,
        remaining: int = 0,
    ):
        self.key = key
        self.retry_after = retry_after
        self.remaining = remaining

        msg = (
            f"Rate limit exceeded for {mask_url(url)} (key: {key}). "
            f"Retry after {retry_after:.3f}s"
        )
        super().__init__(msg, url)


class CircuitOpenError(NetworkError):
    """
    Circuit breaker открыт, запрос заблокирован без вызова транспорта.

    Args:
        url: URL запроса
        key: Ключ circuit breaker'а
        failure_count: Количество ошибок, открывших circuit
        recovery_time: Unix-время, когда circuit перейдёт в HALF_OPEN
    """

    def __init__(
        self,
        url: str,
        key: str,
        failure_count: int = 0,
        recovery_time: Optional[float] = None,
    ):
        self.key = key
        self.failure_count = failure_count
        self.recovery_time = recovery_time

        msg = (
            f"Circuit breaker OPEN for {mask_url(url)} - requests blocked "
            f"({failure_count} failures)"
        )
        super().__init__(msg, url)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# EXECUTION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RetriesExhaustedError(NetworkError):
    """
    Запрос не удался после всех попыток (или на неретраемой ошибке).

    Args:
        url: URL запроса
        attempts: Сколько попыток было сделано
        last_error: Классификация последней ошибки
        attempt_log: Все попытки с задержками и ошибками
    """

    def __init__(
        self,
        url: str,
        attempts: int,
        last_error: 'ClassifiedError',
        attempt_log: Optional[List['RetryAttempt']] = None,
    ):
        self.attempts = attempts
        self.last_error = last_error
        self.attempt_log = list(attempt_log or [])

        msg = f"Request to {mask_url(url)} failed after {attempts} attempt(s)"
        if last_error.status_code is not None:
            msg += f" (last status: {last_error.status_code})"
        msg += f". Last error: {last_error.kind.value}: {last_error.message}"

        super().__init__(msg, url)

    @property
    def kind(self):
        """Категория последней ошибки."""
        return self.last_error.kind

    @property
    def status_code(self) -> Optional[int]:
        """HTTP статус последней попытки, если ответ был."""
        return self.last_error.status_code

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CONFIGURATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ConfigurationError(NetworkError):
    """Ошибка конфигурации или неверные параметры запроса."""
    fatal = True


class ConfigValidationError(ConfigurationError):
    """Невалидный файл конфигурации."""
