"""
Prometheus metrics for circuit breakers.

Rejections are split by reason so dashboards can tell a circuit sitting in
its OPEN window from one that is only waiting on a HALF_OPEN probe.
"""

from __future__ import annotations

from prometheus_client import Counter
from prometheus_client import Enum as EnumMetric

REJECTED_OPEN = "open"
REJECTED_PROBE_IN_FLIGHT = "probe_in_flight"


class CircuitMetrics:
    def __init__(self) -> None:
        self.state = EnumMetric(
            "circuit_state",
            "Current circuit breaker state",
            ["circuit"],
            states=["closed", "open", "half_open"],
        )
        self.transitions_total = Counter(
            "circuit_transitions_total",
            "Circuit state transitions",
            ["circuit", "from_state", "to_state"],
        )
        self.calls_total = Counter(
            "circuit_calls_total",
            "Calls that reached the guarded dependency, by outcome",
            ["circuit", "outcome"],
        )
        self.rejections_total = Counter(
            "circuit_rejections_total",
            "Calls refused without reaching the guarded dependency",
            ["circuit", "reason"],
        )
        self.probes_total = Counter(
            "circuit_probes_total",
            "HALF_OPEN recovery probes, by outcome",
            ["circuit", "outcome"],
        )

    def record_transition(self, circuit: str, from_state: str, to_state: str) -> None:
        self.state.labels(circuit=circuit).state(to_state)
        self.transitions_total.labels(
            circuit=circuit, from_state=from_state, to_state=to_state
        ).inc()

    def record_call(self, circuit: str, succeeded: bool) -> None:
        outcome = "success" if succeeded else "failure"
        self.calls_total.labels(circuit=circuit, outcome=outcome).inc()

    def record_rejection(self, circuit: str, reason: str) -> None:
        self.rejections_total.labels(circuit=circuit, reason=reason).inc()

    def record_probe(self, circuit: str, outcome: str) -> None:
        """outcome is one of success, failure, cancelled."""
        self.probes_total.labels(circuit=circuit, outcome=outcome).inc()


circuit_metrics = CircuitMetrics()
