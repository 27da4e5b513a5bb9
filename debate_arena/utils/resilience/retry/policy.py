from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from debate_arena.core.config import settings

from .classification import is_retryable_error

RetryPredicate = Callable[[BaseException], bool]
RetryObserver = Callable[[BaseException, int], Any]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration shared by any number of calls.

    Delays are in seconds. ``max_retries`` counts retries after the first
    attempt, so a policy allows ``max_retries + 1`` attempts in total.
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0
    retry_predicate: RetryPredicate = is_retryable_error
    on_retry: Optional[RetryObserver] = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.initial_delay > self.max_delay:
            raise ValueError("initial_delay must not exceed max_delay")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be >= 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, **overrides: Any) -> "RetryPolicy":
        """Build the default policy from ``RETRY_*`` settings."""
        values: dict[str, Any] = {
            "max_retries": settings.RETRY_MAX_RETRIES,
            "initial_delay": settings.RETRY_INITIAL_DELAY_SECONDS,
            "max_delay": settings.RETRY_MAX_DELAY_SECONDS,
            "backoff_factor": settings.RETRY_BACKOFF_FACTOR,
        }
        values.update(overrides)
        return cls(**values)
