from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

from debate_arena.utils.logger import get_logger

from .backoff import apply_jitter, compute_backoff
from .monitoring import retry_metrics
from .policy import RetryPolicy

logger = get_logger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[Any]]


class RetryExecutor:
    """
    Runs an async operation, retrying failures according to a RetryPolicy.

    - Attempts are strictly sequential; a success returns immediately.
    - Failures rejected by the policy predicate are re-raised on first sight.
    - The last allowed attempt re-raises whatever it got.
    - Exponential backoff with jitter between attempts.

    The executor keeps no state between ``execute`` calls.
    """

    def __init__(self, sleep: Optional[Sleeper] = None) -> None:
        self._sleep = sleep

    def delay_for(self, attempt: int, policy: RetryPolicy) -> float:
        """Jittered delay to wait after the *attempt*-th failure."""
        return apply_jitter(
            compute_backoff(
                attempt,
                policy.initial_delay,
                policy.backoff_factor,
                policy.max_delay,
            )
        )

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        *,
        name: Optional[str] = None,
    ) -> T:
        """Await *operation* until it succeeds or the policy says stop."""
        policy = policy or RetryPolicy()
        op_name = name or getattr(operation, "__name__", "operation")
        attempt = 1

        while True:
            try:
                return await operation()
            except Exception as exc:
                if attempt >= policy.max_attempts:
                    if policy.max_retries > 0:
                        retry_metrics.inc_exhausted(op_name)
                    logger.error(
                        "retry_exhausted",
                        operation=op_name,
                        attempts=attempt,
                        error=str(exc),
                    )
                    raise

                if not policy.retry_predicate(exc):
                    logger.info(
                        "retry_not_retryable",
                        operation=op_name,
                        attempt=attempt,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    raise

                delay = self.delay_for(attempt, policy)
                self._notify(policy, exc, attempt, op_name)
                logger.warning(
                    "retry_attempt",
                    operation=op_name,
                    attempt=attempt,
                    next_delay_s=round(delay, 3),
                    error=str(exc),
                )
                retry_metrics.inc_attempt(op_name)
                await self._wait(delay)
                attempt += 1

    def _notify(
        self, policy: RetryPolicy, exc: BaseException, attempt: int, op_name: str
    ) -> None:
        if policy.on_retry is None:
            return
        try:
            policy.on_retry(exc, attempt)
        except Exception as observer_exc:  # noqa: BLE001 - observers must not break retries
            logger.error(
                "retry_observer_failed",
                operation=op_name,
                attempt=attempt,
                error=str(observer_exc),
            )

    async def _wait(self, delay: float) -> None:
        if self._sleep is not None:
            await self._sleep(delay)
        else:
            await asyncio.sleep(delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
) -> T:
    """Shortcut for ``RetryExecutor().execute(operation, policy)``."""
    return await RetryExecutor().execute(operation, policy)


def retry(policy: Optional[RetryPolicy] = None, executor: Optional[RetryExecutor] = None):
    """
    Retry decorator for async callables.

    Each call of the decorated function runs through ``RetryExecutor.execute``
    with the given policy (defaults when omitted).
    """

    runner = executor or RetryExecutor()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await runner.execute(
                lambda: func(*args, **kwargs),
                policy,
                name=getattr(func, "__name__", None),
            )

        return wrapper

    return decorator
