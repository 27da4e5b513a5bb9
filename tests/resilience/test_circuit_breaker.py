import asyncio

import pytest
from prometheus_client import REGISTRY

from debate_arena.utils.resilience.circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
)
from debate_arena.utils.resilience.circuit_breaker.policies import CircuitBreakerConfig
from debate_arena.utils.resilience.retry.executor import RetryExecutor
from debate_arena.utils.resilience.retry.policy import RetryPolicy

pytestmark = pytest.mark.asyncio


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=3, recovery_timeout=1.0),
        name="test",
        clock=clock,
    )


class Operation:
    """Scripted async operation: each entry is a value to return or an exception to raise."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


async def test_starts_closed(breaker):
    assert breaker.get_state() == CircuitState.CLOSED
    health = breaker.get_health()
    assert health.state == CircuitState.CLOSED
    assert health.failure_count == 0
    assert health.last_failure_time is None
    assert health.next_attempt_time is None
    assert breaker.can_execute is True


async def test_opens_at_threshold_and_fails_fast(breaker):
    op = Operation(RuntimeError("Service down"))

    for _ in range(3):
        with pytest.raises(RuntimeError, match="Service down"):
            await breaker.execute(op)

    assert breaker.state == CircuitState.OPEN
    assert op.calls == 3

    with pytest.raises(CircuitBreakerOpenError) as excinfo:
        await breaker.execute(op)
    assert op.calls == 3
    assert excinfo.value.circuit_name == "test"
    assert excinfo.value.next_attempt_time == pytest.approx(1_001.0)
    assert breaker.can_execute is False


async def test_threshold_call_still_reaches_operation(breaker):
    op = Operation(RuntimeError("x"))
    for expected_calls in (1, 2, 3):
        with pytest.raises(RuntimeError):
            await breaker.execute(op)
        assert op.calls == expected_calls


async def test_success_resets_consecutive_failures(breaker):
    op = Operation(
        RuntimeError("Failure 1"),
        RuntimeError("Failure 2"),
        "success",
        RuntimeError("Failure 3"),
        RuntimeError("Failure 4"),
    )

    with pytest.raises(RuntimeError, match="Failure 1"):
        await breaker.execute(op)
    with pytest.raises(RuntimeError, match="Failure 2"):
        await breaker.execute(op)
    assert await breaker.execute(op) == "success"
    assert breaker.failure_count == 0
    with pytest.raises(RuntimeError, match="Failure 3"):
        await breaker.execute(op)
    with pytest.raises(RuntimeError, match="Failure 4"):
        await breaker.execute(op)

    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 2


async def test_half_open_probe_success_closes(breaker, clock):
    failing = Operation(RuntimeError("boom"))
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing)

    clock.advance(0.5)
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.execute(failing)

    clock.advance(0.5)
    assert breaker.can_execute is True
    probe = Operation("ok")
    assert await breaker.execute(probe) == "ok"
    assert probe.calls == 1
    assert breaker.state == CircuitState.CLOSED
    assert breaker.failure_count == 0


async def test_half_open_probe_failure_reopens(breaker, clock):
    failing = Operation(RuntimeError("boom"))
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing)

    clock.advance(1.0)
    with pytest.raises(RuntimeError):
        await breaker.execute(failing)

    assert failing.calls == 4
    assert breaker.state == CircuitState.OPEN
    health = breaker.get_health()
    assert health.last_failure_time == clock.now
    assert health.next_attempt_time == pytest.approx(clock.now + 1.0)

    # the recovery window restarted from the probe failure
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.execute(failing)
    assert failing.calls == 4


async def test_only_one_probe_in_flight(breaker, clock):
    failing = Operation(RuntimeError("boom"))
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing)
    clock.advance(2.0)

    release = asyncio.Event()
    probe_calls = 0

    async def slow_probe():
        nonlocal probe_calls
        probe_calls += 1
        await release.wait()
        return "recovered"

    probe_task = asyncio.create_task(breaker.execute(slow_probe))
    await asyncio.sleep(0)
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.can_execute is False

    with pytest.raises(CircuitBreakerOpenError):
        await breaker.execute(slow_probe)

    release.set()
    assert await probe_task == "recovered"
    assert probe_calls == 1
    assert breaker.state == CircuitState.CLOSED


async def test_cancelled_probe_frees_the_slot(breaker, clock):
    failing = Operation(RuntimeError("boom"))
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing)
    clock.advance(2.0)

    async def hang():
        await asyncio.Event().wait()

    task = asyncio.create_task(breaker.execute(hang))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.failure_count == 3
    assert await breaker.execute(Operation("ok")) == "ok"
    assert breaker.state == CircuitState.CLOSED


async def test_health_snapshot_when_open(breaker, clock):
    failing = Operation(RuntimeError("boom"))
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing)

    health = breaker.get_health()
    assert health.as_dict() == {
        "state": "open",
        "failure_count": 3,
        "last_failure_time": clock.now,
        "next_attempt_time": clock.now + 1.0,
    }


async def test_reset_forces_closed(breaker):
    failing = Operation(RuntimeError("boom"))
    for _ in range(3):
        with pytest.raises(RuntimeError):
            await breaker.execute(failing)

    breaker.reset()

    health = breaker.get_health()
    assert health.state == CircuitState.CLOSED
    assert health.failure_count == 0
    assert health.last_failure_time is None
    assert await breaker.execute(Operation("ok")) == "ok"


async def test_late_success_does_not_close_open_circuit(clock):
    breaker = CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=1, recovery_timeout=10.0),
        name="late",
        clock=clock,
    )
    release = asyncio.Event()

    async def slow_success():
        await release.wait()
        return "late"

    slow = asyncio.create_task(breaker.execute(slow_success))
    await asyncio.sleep(0)

    with pytest.raises(RuntimeError):
        await breaker.execute(Operation(RuntimeError("boom")))
    assert breaker.state == CircuitState.OPEN

    release.set()
    assert await slow == "late"
    assert breaker.state == CircuitState.OPEN


async def test_config_validation():
    with pytest.raises(ValueError):
        CircuitBreakerConfig(failure_threshold=0)
    with pytest.raises(ValueError):
        CircuitBreakerConfig(recovery_timeout=-1)
    assert CircuitBreakerConfig(monitoring_period=1.0).monitoring_period == 1.0


async def test_breaker_counts_calls_not_attempts(clock):
    breaker = CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=2, recovery_timeout=1.0),
        name="composed",
        clock=clock,
    )

    async def no_sleep(_delay):
        return None

    executor = RetryExecutor(sleep=no_sleep)
    policy = RetryPolicy(max_retries=2, retry_predicate=lambda exc: True)
    op = Operation(RuntimeError("Service unavailable"))

    with pytest.raises(RuntimeError):
        await breaker.execute(lambda: executor.execute(op, policy))
    assert op.calls == 3
    assert breaker.failure_count == 1
    assert breaker.state == CircuitState.CLOSED

    with pytest.raises(RuntimeError):
        await breaker.execute(lambda: executor.execute(op, policy))
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(CircuitBreakerOpenError):
        await breaker.execute(lambda: executor.execute(op, policy))
    assert op.calls == 6


async def test_retry_around_breaker_stops_at_open_circuit(clock):
    breaker = CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=2, recovery_timeout=1.0),
        name="outer-retry",
        clock=clock,
    )

    async def no_sleep(_delay):
        return None

    op = Operation(RuntimeError("Service unavailable"))
    policy = RetryPolicy(max_retries=1, retry_predicate=lambda exc: True)

    with pytest.raises(RuntimeError, match="Service unavailable"):
        await RetryExecutor(sleep=no_sleep).execute(lambda: breaker.execute(op), policy)

    assert breaker.state == CircuitState.OPEN
    with pytest.raises(CircuitBreakerOpenError, match="is OPEN"):
        await breaker.execute(op)


async def test_reset_orphans_in_flight_recovery_call(breaker, clock):
    failing = Operation(RuntimeError("boom"))

    async def trip():
        for _ in range(3):
            with pytest.raises(RuntimeError):
                await breaker.execute(failing)
        clock.advance(2.0)

    def gated(result):
        gate = asyncio.Event()

        async def op():
            await gate.wait()
            return result

        return gate, op

    await trip()
    stale_gate, stale_op = gated("stale")
    stale = asyncio.create_task(breaker.execute(stale_op))
    await asyncio.sleep(0)

    breaker.reset()
    await trip()
    fresh_gate, fresh_op = gated("fresh")
    fresh = asyncio.create_task(breaker.execute(fresh_op))
    await asyncio.sleep(0)
    assert breaker.state == CircuitState.HALF_OPEN

    stale_gate.set()
    assert await stale == "stale"
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.can_execute is False
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.execute(Operation("intruder"))

    fresh_gate.set()
    assert await fresh == "fresh"
    assert breaker.state == CircuitState.CLOSED
    assert breaker.can_execute is True


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


async def test_metrics_split_rejections_and_recovery_outcomes(clock):
    breaker = CircuitBreaker(
        CircuitBreakerConfig(failure_threshold=1, recovery_timeout=1.0),
        name="metrics",
        clock=clock,
    )
    before_open = _sample("circuit_rejections_total", circuit="metrics", reason="open")
    before_probe = _sample(
        "circuit_rejections_total", circuit="metrics", reason="probe_in_flight"
    )
    before_success = _sample("circuit_probes_total", circuit="metrics", outcome="success")

    with pytest.raises(RuntimeError):
        await breaker.execute(Operation(RuntimeError("boom")))
    assert _sample("circuit_state", circuit="metrics", circuit_state="open") == 1.0

    with pytest.raises(CircuitBreakerOpenError):
        await breaker.execute(Operation("ok"))

    clock.advance(2.0)
    release = asyncio.Event()

    async def slow_probe():
        await release.wait()
        return "ok"

    probe = asyncio.create_task(breaker.execute(slow_probe))
    await asyncio.sleep(0)
    with pytest.raises(CircuitBreakerOpenError):
        await breaker.execute(Operation("ok"))
    release.set()
    await probe

    assert (
        _sample("circuit_rejections_total", circuit="metrics", reason="open")
        == before_open + 1
    )
    assert (
        _sample("circuit_rejections_total", circuit="metrics", reason="probe_in_flight")
        == before_probe + 1
    )
    assert (
        _sample("circuit_probes_total", circuit="metrics", outcome="success")
        == before_success + 1
    )
    assert _sample("circuit_state", circuit="metrics", circuit_state="closed") == 1.0
