"""
Tests for RetryCoordinator.
"""

import pytest

from resilient_network.core.classifier import ClassifiedError, ErrorKind
from resilient_network.core.config import RetryConfig
from resilient_network.core.retry_engine import AttemptResult, RetryCoordinator

from tests.conftest import SleepRecorder


def server_error(**kwargs):
    return ClassifiedError.of(ErrorKind.SERVER_ERROR, status_code=503, message="HTTP 503", **kwargs)


def scripted(results):
    """Operation returning the given AttemptResults in order."""
    calls = []

    async def operation(index):
        calls.append(index)
        return results[len(calls) - 1]

    operation.calls = calls
    return operation


class TestGetDelay:
    """Backoff computation."""

    def test_exponential_without_jitter(self):
        coordinator = RetryCoordinator(RetryConfig(max_attempts=5, base_delay=0.1, jitter=False))

        delays = [coordinator.get_delay(i) for i in range(1, 6)]

        assert delays == pytest.approx([0.0, 0.1, 0.2, 0.4, 0.8])

    def test_capped_at_max_delay(self):
        coordinator = RetryCoordinator(
            RetryConfig(max_attempts=10, base_delay=1.0, max_delay=3.0, jitter=False)
        )

        assert coordinator.get_delay(6) == 3.0

    def test_jitter_stays_in_range(self):
        coordinator = RetryCoordinator(RetryConfig(base_delay=1.0, max_delay=100.0, jitter=True))

        for _ in range(50):
            delay = coordinator.get_delay(3)
            assert 1.0 <= delay < 3.0

    def test_retry_after_takes_priority(self):
        coordinator = RetryCoordinator(RetryConfig(base_delay=0.1, jitter=False))
        error = ClassifiedError.of(ErrorKind.RATE_LIMITED_UPSTREAM, status_code=429, retry_after=4.0)

        assert coordinator.get_delay(2, error) == 4.0

    def test_retry_after_capped(self):
        coordinator = RetryCoordinator(RetryConfig(max_delay=10.0, jitter=False))
        error = ClassifiedError.of(ErrorKind.RATE_LIMITED_UPSTREAM, status_code=429, retry_after=120.0)

        assert coordinator.get_delay(2, error) == 10.0

    def test_retry_after_ignored_when_disabled(self):
        coordinator = RetryCoordinator(
            RetryConfig(base_delay=0.1, jitter=False, respect_retry_after=False)
        )
        error = ClassifiedError.of(ErrorKind.RATE_LIMITED_UPSTREAM, status_code=429, retry_after=4.0)

        assert coordinator.get_delay(2, error) == pytest.approx(0.1)


class TestRun:
    """Retry loop."""

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(RetryConfig(max_attempts=3), sleep=sleep)
        operation = scripted([AttemptResult.ok("done")])

        outcome = await coordinator.run(operation)

        assert outcome.is_ok
        assert outcome.result.value == "done"
        assert operation.calls == [1]
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        sleep = SleepRecorder()
        coordinator = RetryCoordinator(
            RetryConfig(max_attempts=3, base_delay=0.1, jitter=False), sleep=sleep
        )
        operation = scripted([
            AttemptResult.failed(server_error()),
            AttemptResult.failed(server_error()),
            AttemptResult.ok("done"),
        ])

        outcome = await coordinator.run(operation)

        assert outcome.is_ok
        assert operation.calls == [1, 2, 3]
        assert sleep.delays == pytest.approx([0.1, 0.2])
        assert [a.delay for a in outcome.attempts] == pytest.approx([0.0, 0.1, 0.2])

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        coordinator = RetryCoordinator(
            RetryConfig(max_attempts=2, base_delay=0.0), sleep=SleepRecorder()
        )
        operation = scripted([AttemptResult.failed(server_error())] * 2)

        outcome = await coordinator.run(operation)

        assert not outcome.is_ok
        assert outcome.result.error.kind == ErrorKind.SERVER_ERROR
        assert len(outcome.attempts) == 2

    @pytest.mark.asyncio
    async def test_stops_on_non_retryable(self):
        coordinator = RetryCoordinator(RetryConfig(max_attempts=5), sleep=SleepRecorder())
        client_error = ClassifiedError.of(ErrorKind.CLIENT_ERROR, status_code=404)
        operation = scripted([AttemptResult.failed(client_error)])

        outcome = await coordinator.run(operation)

        assert operation.calls == [1]
        assert outcome.result.error is client_error

    @pytest.mark.asyncio
    async def test_policy_override(self):
        coordinator = RetryCoordinator(RetryConfig(max_attempts=5), sleep=SleepRecorder())
        operation = scripted([AttemptResult.failed(server_error())] * 5)

        await coordinator.run(operation, RetryConfig(max_attempts=1))

        assert operation.calls == [1]

    @pytest.mark.asyncio
    async def test_on_retry_hook(self):
        seen = []
        coordinator = RetryCoordinator(
            RetryConfig(max_attempts=2, base_delay=0.05, jitter=False),
            sleep=SleepRecorder(),
            on_retry=seen.append,
        )
        operation = scripted([AttemptResult.failed(server_error()), AttemptResult.ok(1)])

        await coordinator.run(operation)

        assert len(seen) == 1
        assert seen[0].index == 2
        assert seen[0].delay == pytest.approx(0.05)
        assert seen[0].error.kind == ErrorKind.SERVER_ERROR


class TestStats:
    """Retry statistics."""

    @pytest.mark.asyncio
    async def test_counters(self):
        coordinator = RetryCoordinator(RetryConfig(max_attempts=2, base_delay=0.0), sleep=SleepRecorder())

        await coordinator.run(scripted([AttemptResult.failed(server_error()), AttemptResult.ok(1)]))
        await coordinator.run(scripted([AttemptResult.failed(server_error())] * 2))

        stats = coordinator.get_stats()
        assert stats.total_operations == 2
        assert stats.successful_operations == 1
        assert stats.failed_operations == 1
        assert stats.total_retries == 2
        assert stats.success_rate == 0.5

    @pytest.mark.asyncio
    async def test_raising_operation_counted_as_failed(self):
        coordinator = RetryCoordinator(RetryConfig(max_attempts=3), sleep=SleepRecorder())

        async def operation(index):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await coordinator.run(operation)

        stats = coordinator.get_stats()
        assert stats.total_operations == 1
        assert stats.failed_operations == 1
        assert stats.successful_operations == 0

    @pytest.mark.asyncio
    async def test_get_stats_returns_copy_and_reset(self):
        coordinator = RetryCoordinator(sleep=SleepRecorder())
        await coordinator.run(scripted([AttemptResult.ok(1)]))

        snapshot = coordinator.get_stats()
        coordinator.reset_stats()

        assert snapshot.total_operations == 1
        assert coordinator.get_stats().total_operations == 0
        assert coordinator.get_stats().to_dict()["success_rate"] == 0.0
