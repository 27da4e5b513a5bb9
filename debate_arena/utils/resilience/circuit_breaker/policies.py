from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from debate_arena.core.config import settings


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """
    Circuit breaker thresholds.

    - failure_threshold: consecutive failures (since the last success) that open the circuit
    - recovery_timeout: seconds the circuit stays OPEN before a probe is allowed
    - monitoring_period: reserved; not used by the state machine
    """

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    monitoring_period: Optional[float] = None

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout must be >= 0")

    def should_open(self, consecutive_failures: int) -> bool:
        return consecutive_failures >= self.failure_threshold

    @classmethod
    def from_settings(cls, **overrides: Any) -> "CircuitBreakerConfig":
        values: dict[str, Any] = {
            "failure_threshold": settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            "recovery_timeout": float(settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SECONDS),
        }
        values.update(overrides)
        return cls(**values)
