from .circuit_breaker import BreakerSnapshot, CircuitBreaker, CircuitBreakerRegistry
from .executor import ResilientCallExecutor
from .retry_policy import RetryPolicy, default_is_retryable

__all__ = [
    "BreakerSnapshot",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "ResilientCallExecutor",
    "RetryPolicy",
    "default_is_retryable",
]
