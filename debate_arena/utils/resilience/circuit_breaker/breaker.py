from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from debate_arena.utils.logger import get_logger

from .monitoring import REJECTED_OPEN, REJECTED_PROBE_IN_FLIGHT, circuit_metrics
from .policies import CircuitBreakerConfig

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenError(RuntimeError):
    """Raised when attempting to call through an OPEN circuit."""

    def __init__(self, circuit_name: str, next_attempt_time: Optional[float] = None):
        super().__init__(f"Circuit '{circuit_name}' is OPEN - service unavailable")
        self.circuit_name = circuit_name
        self.next_attempt_time = next_attempt_time


@dataclass(frozen=True)
class CircuitHealth:
    """Point-in-time view of a circuit for admin and debug surfaces."""

    state: CircuitState
    failure_count: int
    last_failure_time: Optional[float]
    next_attempt_time: Optional[float]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
            "next_attempt_time": self.next_attempt_time,
        }


class CircuitBreaker:
    """
    Async-first circuit breaker guarding one upstream dependency.

    - CLOSED: calls pass through; each failure bumps the consecutive-failure
      count, a success resets it; reaching the threshold opens the circuit.
    - OPEN: calls fail fast with CircuitBreakerOpenError until
      `recovery_timeout` has elapsed since the last failure; the call that
      notices the elapsed timeout becomes the probe.
    - HALF_OPEN: one probe in flight at a time, other callers are rejected;
      probe success -> CLOSED, probe failure -> OPEN.

    Only call-level outcomes are counted. Whether a failure deserved a retry
    is the RetryExecutor's business.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None
        # Token of the admitted HALF_OPEN probe, None when the slot is free
        self._probe: Optional[object] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    def get_state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def can_execute(self) -> bool:
        """Whether a call made now would reach the dependency."""
        if self._state == CircuitState.OPEN:
            return self._recovery_elapsed()
        if self._state == CircuitState.HALF_OPEN:
            return self._probe is None
        return True

    def get_health(self) -> CircuitHealth:
        next_attempt = None
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            next_attempt = self._last_failure_time + self.config.recovery_timeout
        return CircuitHealth(
            state=self._state,
            failure_count=self._failure_count,
            last_failure_time=self._last_failure_time,
            next_attempt_time=next_attempt,
        )

    def reset(self) -> None:
        """Administrative override: force CLOSED with clean counters."""
        logger.info("circuit_reset", circuit=self.name, from_state=self._state.value)
        self._failure_count = 0
        self._last_failure_time = None
        self._probe = None
        self._transition(CircuitState.CLOSED)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Invoke a zero-argument async operation through the circuit breaker."""
        async with self._lock:
            probe = self._admit()

        try:
            result = await operation()
        except Exception:
            async with self._lock:
                self._on_failure(self._owns_probe(probe))
            raise
        except BaseException:
            if self._owns_probe(probe):
                circuit_metrics.record_probe(self.name, "cancelled")
            raise
        else:
            async with self._lock:
                self._on_success(self._owns_probe(probe))
            return result
        finally:
            # A probe orphaned by reset() must not free a newer probe's slot
            if self._owns_probe(probe):
                self._probe = None

    def _owns_probe(self, probe: Optional[object]) -> bool:
        return probe is not None and self._probe is probe

    def _transition(self, new_state: CircuitState) -> None:
        if self._state == new_state:
            return
        prev = self._state
        self._state = new_state
        logger.warning(
            "circuit_state_change",
            circuit=self.name,
            from_state=prev.value,
            to_state=new_state.value,
            failure_count=self._failure_count,
        )
        circuit_metrics.record_transition(self.name, prev.value, new_state.value)

    def _recovery_elapsed(self) -> bool:
        if self._last_failure_time is None:
            return True
        return (self._clock() - self._last_failure_time) >= self.config.recovery_timeout

    def _admit(self) -> Optional[object]:
        """Decide whether a call may proceed; returns a token for the probe call."""
        if self._state == CircuitState.OPEN:
            if not self._recovery_elapsed():
                self._reject(REJECTED_OPEN)
            self._transition(CircuitState.HALF_OPEN)

        if self._state == CircuitState.HALF_OPEN:
            if self._probe is not None:
                self._reject(REJECTED_PROBE_IN_FLIGHT)
            self._probe = object()
            return self._probe
        return None

    def _reject(self, reason: str) -> None:
        circuit_metrics.record_rejection(self.name, reason)
        health = self.get_health()
        logger.debug(
            "circuit_rejected",
            circuit=self.name,
            reason=reason,
            state=health.state.value,
            next_attempt_time=health.next_attempt_time,
        )
        raise CircuitBreakerOpenError(self.name, health.next_attempt_time)

    def _on_failure(self, is_probe: bool) -> None:
        self._failure_count += 1
        circuit_metrics.record_call(self.name, succeeded=False)

        if self._state == CircuitState.HALF_OPEN:
            if is_probe:
                circuit_metrics.record_probe(self.name, "failure")
                self._last_failure_time = self._clock()
                self._transition(CircuitState.OPEN)
        elif self._state == CircuitState.CLOSED:
            self._last_failure_time = self._clock()
            if self.config.should_open(self._failure_count):
                self._transition(CircuitState.OPEN)
        # OPEN: late failure from a call admitted earlier, the window stays as is

    def _on_success(self, is_probe: bool) -> None:
        circuit_metrics.record_call(self.name, succeeded=True)

        if self._state == CircuitState.HALF_OPEN:
            if is_probe:
                circuit_metrics.record_probe(self.name, "success")
                self._failure_count = 0
                self._transition(CircuitState.CLOSED)
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0
