"""Unit tests for ResilientCallExecutor."""

from unittest.mock import AsyncMock, call

import httpx
import pytest

from livecast.schemas import CircuitState
from livecast.services.resilience import CircuitBreakerRegistry, ResilientCallExecutor, RetryPolicy
from livecast.utils.app_errors import (
    AuthExpiredError,
    CircuitOpenError,
    MaxRetriesExceededError,
    NetworkError,
    RequestTimeoutError,
    ServerError,
)


def _policy(**overrides) -> RetryPolicy:
    params = {"max_attempts": 3, "base_delay": 1.0, "max_delay": 10.0, "jitter_enabled": False}
    params.update(overrides)
    return RetryPolicy(**params)


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def executor(sleep) -> ResilientCallExecutor:
    registry = CircuitBreakerRegistry(threshold=2, reset_timeout=60.0)
    return ResilientCallExecutor(registry, sleep=sleep, rand=lambda: 0.0)


class TestRetry:
    async def test_transient_failures_then_success(self, executor, sleep):
        """Two network failures then success: backoff waits 1s then 2s."""
        operation = AsyncMock(side_effect=[NetworkError(), NetworkError(), "done"])

        result = await executor.retry(operation, _policy())

        assert result == "done"
        assert operation.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    async def test_first_attempt_success_does_not_sleep(self, executor, sleep):
        result = await executor.retry(AsyncMock(return_value=42), _policy())

        assert result == 42
        sleep.assert_not_awaited()

    async def test_non_retryable_propagates_immediately(self, executor, sleep):
        error = AuthExpiredError()
        operation = AsyncMock(side_effect=error)

        with pytest.raises(AuthExpiredError) as exc_info:
            await executor.retry(operation, _policy())

        assert exc_info.value is error
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    async def test_http_401_is_classified_and_not_retried(self, executor):
        response = httpx.Response(401, request=httpx.Request("GET", "https://platform.test/x"))
        operation = AsyncMock(side_effect=httpx.HTTPStatusError("401", request=response.request, response=response))

        with pytest.raises(AuthExpiredError):
            await executor.retry(operation, _policy())

        operation.assert_awaited_once()

    async def test_exhaustion_raises_max_retries(self, executor, sleep):
        operation = AsyncMock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(MaxRetriesExceededError) as exc_info:
            await executor.retry(operation, _policy())

        assert operation.await_count == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, NetworkError)
        assert sleep.await_count == 2

    async def test_custom_predicate(self, executor, sleep):
        policy = _policy(is_retryable=lambda error: isinstance(error, RequestTimeoutError))
        operation = AsyncMock(side_effect=ServerError())

        with pytest.raises(ServerError):
            await executor.retry(operation, policy)

        sleep.assert_not_awaited()

    async def test_jitter_added_to_delay(self, sleep):
        executor = ResilientCallExecutor(CircuitBreakerRegistry(), sleep=sleep, rand=lambda: 0.25)
        operation = AsyncMock(side_effect=[NetworkError(), "ok"])

        await executor.retry(operation, _policy(jitter_enabled=True))

        assert sleep.await_args_list == [call(1.25)]


class TestExecute:
    """The whole retry sequence counts as one breaker outcome."""

    async def test_success_keeps_breaker_closed(self, executor):
        result = await executor.execute("platform-api", AsyncMock(return_value="ok"), _policy())

        assert result == "ok"
        assert executor.registry.get("platform-api").state == CircuitState.CLOSED

    async def test_exhausted_retries_count_once(self, executor):
        operation = AsyncMock(side_effect=NetworkError())

        with pytest.raises(MaxRetriesExceededError):
            await executor.execute("platform-api", operation, _policy())

        breaker = executor.registry.get("platform-api")
        assert breaker.failure_count == 1
        assert breaker.state == CircuitState.CLOSED

    async def test_open_breaker_skips_operation(self, executor):
        failing = AsyncMock(side_effect=AuthExpiredError())
        for _ in range(2):
            with pytest.raises(AuthExpiredError):
                await executor.execute("platform-api", failing, _policy())

        operation = AsyncMock()
        with pytest.raises(CircuitOpenError):
            await executor.execute("platform-api", operation, _policy())

        operation.assert_not_awaited()

    async def test_default_policy_is_api_call(self, executor, sleep):
        operation = AsyncMock(side_effect=[NetworkError(), "ok"])

        assert await executor.execute("platform-api", operation) == "ok"
        assert sleep.await_args_list == [call(1.0)]


class TestServerErrorRecovery:
    async def test_two_500s_then_success(self, sleep):
        """max_attempts=3, base 1s: 500 on attempts 1 and 2, success on 3, waits 1s then 2s."""
        request = httpx.Request("POST", "https://platform.test/liveBroadcasts")
        server_error = httpx.HTTPStatusError(
            "500", request=request, response=httpx.Response(500, request=request)
        )
        operation = AsyncMock(side_effect=[server_error, server_error, {"id": "bc1"}])
        executor = ResilientCallExecutor(CircuitBreakerRegistry(threshold=3), sleep=sleep, rand=lambda: 0.0)

        result = await executor.execute("platform-api", operation, _policy())

        assert result == {"id": "bc1"}
        assert sleep.await_args_list == [call(1.0), call(2.0)]
        assert executor.registry.get("platform-api").failure_count == 0
