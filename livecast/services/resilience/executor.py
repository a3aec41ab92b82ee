import asyncio
import random
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from livecast.utils.app_errors import MaxRetriesExceededError, classify_error

from .circuit_breaker import CircuitBreakerRegistry
from .retry_policy import RetryPolicy

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


class ResilientCallExecutor:
    """Runs downstream calls with retry-with-backoff inside a per-dependency circuit breaker.

    Every exception leaving ``retry``/``execute`` is an ``AppError``: the classified
    non-retryable error, ``MaxRetriesExceededError`` or ``CircuitOpenError``.
    """

    def __init__(
        self,
        registry: CircuitBreakerRegistry,
        *,
        sleep: SleepFunc = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.registry = registry
        self._sleep = sleep
        self._rand = rand

    async def retry(self, operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
        for attempt in range(1, policy.max_attempts + 1):
            try:
                result = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = classify_error(exc)

                if not policy.is_retryable(error):
                    logger.warning(f"Non-retryable error on attempt {attempt}: {error.errcode} {error}")
                    if error is exc:
                        raise
                    raise error from exc

                if attempt == policy.max_attempts:
                    logger.error(f"Giving up after {attempt} attempts: {error.errcode} {error}")
                    raise MaxRetriesExceededError(error, attempt) from exc

                delay = policy.compute_delay(attempt, self._rand)
                logger.warning(
                    f"Attempt {attempt}/{policy.max_attempts} failed ({error.errcode}: {error}), "
                    f"retrying in {delay:.2f}s"
                )
                await self._sleep(delay)
                continue

            if attempt > 1:
                logger.info(f"Request succeeded after {attempt - 1} retries")
            return result

        raise AssertionError("unreachable")

    async def execute(
        self,
        dependency: str,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
    ) -> T:
        """Retry ``operation`` under ``policy`` behind the breaker named ``dependency``."""
        policy = policy or RetryPolicy.api_call()
        breaker = self.registry.get(dependency)
        return await breaker.call(lambda: self.retry(operation, policy))
