"""
Retry engine для повторных попыток одной логической операции.

Включает:
- Exponential backoff с jitter
- Retry-After для 429 ответов
- Раннюю остановку на неретраемых ошибках
- Статистику по всем операциям
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from .classifier import ClassifiedError
from .config import RetryConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AttemptResult(Generic[T]):
    """
    Результат одной попытки: либо значение, либо классифицированная ошибка.

    Попытки не бросают исключения для ошибок транспорта - решение о
    повторе принимается по ``error.retryable``.
    """
    value: Optional[T] = None
    error: Optional[ClassifiedError] = None

    @classmethod
    def ok(cls, value: T) -> 'AttemptResult[T]':
        return cls(value=value)

    @classmethod
    def failed(cls, error: ClassifiedError) -> 'AttemptResult[T]':
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None


@dataclass
class RetryAttempt:
    """Одна попытка: номер (с 1), задержка перед ней (сек), ошибка."""
    index: int
    delay: float = 0.0
    error: Optional[ClassifiedError] = None


@dataclass
class RetryOutcome(Generic[T]):
    """Итог run(): результат последней попытки и журнал всех попыток."""
    result: AttemptResult[T]
    attempts: List[RetryAttempt] = field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return self.result.is_ok


@dataclass
class RetryStats:
    total_operations: int = 0
    successful_operations: int = 0
    failed_operations: int = 0
    total_retries: int = 0

    @property
    def success_rate(self) -> float:
        if self.total_operations == 0:
            return 0.0
        return self.successful_operations / self.total_operations

    def to_dict(self) -> dict:
        return {
            "total_operations": self.total_operations,
            "successful_operations": self.successful_operations,
            "failed_operations": self.failed_operations,
            "total_retries": self.total_retries,
            "success_rate": self.success_rate,
        }


class RetryCoordinator:
    """
    Выполняет операцию до ``max_attempts`` раз с exponential backoff.

    Задержка перед попыткой i (с 1): 0 для первой, иначе
    ``min(base_delay * backoff_factor ** (i - 2), max_delay)``.

    Examples:
        >>> coordinator = RetryCoordinator(RetryConfig(max_attempts=3, base_delay=0.1, jitter=False))
        >>> coordinator.get_delay(1), coordinator.get_delay(2), coordinator.get_delay(3)
        (0.0, 0.1, 0.2)
        >>> outcome = await coordinator.run(attempt_fn)
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_retry: Optional[Callable[[RetryAttempt], Any]] = None,
    ):
        """
        Args:
            config: Политика по умолчанию
            sleep: Корутина ожидания (подменяется в тестах)
            on_retry: Хук, вызывается перед каждым ожиданием
        """
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._on_retry = on_retry
        self._stats = RetryStats()

    def get_delay(
        self,
        attempt: int,
        error: Optional[ClassifiedError] = None,
        policy: Optional[RetryConfig] = None,
    ) -> float:
        """
        Вычислить задержку перед попыткой ``attempt``.

        Args:
            attempt: Номер попытки (с 1)
            error: Ошибка предыдущей попытки (для Retry-After)
            policy: Политика (по умолчанию self.config)

        Returns:
            Секунды ожидания
        """
        policy = policy or self.config
        if attempt <= 1:
            return 0.0

        # Приоритет 1: Retry-After от сервера
        if policy.respect_retry_after and error is not None and error.retry_after is not None:
            return min(error.retry_after, policy.max_delay)

        # Приоритет 2: exponential backoff
        wait = policy.base_delay * (policy.backoff_factor ** (attempt - 2))
        wait = min(wait, policy.max_delay)

        # Jitter 50-150% от wait
        if policy.jitter:
            wait = min(wait * (0.5 + random.random()), policy.max_delay)

        return wait

    async def run(
        self,
        operation: Callable[[int], Awaitable[AttemptResult[T]]],
        policy: Optional[RetryConfig] = None,
    ) -> RetryOutcome[T]:
        """
        Выполнить операцию с повторами.

        Args:
            operation: ``async (attempt_index) -> AttemptResult``
            policy: Политика для этого вызова (по умолчанию self.config)

        Returns:
            RetryOutcome с результатом последней попытки

        Исключение из ``operation`` (или отмена) пробрасывается как есть,
        операция при этом считается неудачной в статистике.
        """
        policy = policy or self.config
        attempts: List[RetryAttempt] = []
        last_error: Optional[ClassifiedError] = None
        result: AttemptResult[T] = AttemptResult()
        succeeded = False

        try:
            for index in range(1, policy.max_attempts + 1):
                delay = self.get_delay(index, last_error, policy)

                if index > 1:
                    self._stats.total_retries += 1
                    if self._on_retry is not None:
                        self._on_retry(RetryAttempt(index=index, delay=delay, error=last_error))
                    logger.debug(
                        "Retry %d/%d in %.3fs after %s",
                        index,
                        policy.max_attempts,
                        delay,
                        last_error.kind.value if last_error else "error",
                    )
                    await self._sleep(delay)

                result = await operation(index)
                attempts.append(RetryAttempt(index=index, delay=delay, error=result.error))

                if result.is_ok:
                    succeeded = True
                    return RetryOutcome(result=result, attempts=attempts)

                last_error = result.error
                if last_error is not None and not last_error.retryable:
                    logger.debug("Not retrying non-retryable %s", last_error.kind.value)
                    break

            return RetryOutcome(result=result, attempts=attempts)
        finally:
            self._stats.total_operations += 1
            if succeeded:
                self._stats.successful_operations += 1
            else:
                self._stats.failed_operations += 1

    def get_stats(self) -> RetryStats:
        """Копия статистики."""
        return RetryStats(
            total_operations=self._stats.total_operations,
            successful_operations=self._stats.successful_operations,
            failed_operations=self._stats.failed_operations,
            total_retries=self._stats.total_retries,
        )

    def reset_stats(self) -> None:
        """Сбросить счётчики."""
        self._stats = RetryStats()
