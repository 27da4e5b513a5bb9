"""
Resilience utilities: retries with backoff and circuit breakers.

Async-first building blocks that make an unreliable upstream dependency
behave predictably for callers. Usual composition is
``breaker.execute(lambda: executor.execute(op, policy))`` so the breaker
counts call-level outcomes after retries are spent.
"""

from .circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitHealth,
    CircuitState,
)
from .circuit_breaker.policies import CircuitBreakerConfig
from .retry.classification import is_retryable_error
from .retry.executor import RetryExecutor, retry, with_retry
from .retry.http import HTTPStatusFailure, RequestTimeoutError, fetch_with_retry
from .retry.policy import RetryPolicy

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpenError",
    "CircuitHealth",
    "CircuitState",
    "RetryExecutor",
    "RetryPolicy",
    "retry",
    "with_retry",
    "fetch_with_retry",
    "is_retryable_error",
    "HTTPStatusFailure",
    "RequestTimeoutError",
]
