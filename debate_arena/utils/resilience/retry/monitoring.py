from __future__ import annotations

from prometheus_client import Counter


class _RetryMetrics:
    def __init__(self) -> None:
        self.retry_attempts_total = Counter(
            "retry_attempts_total",
            "Retries scheduled after a retryable failure",
            ["operation"],
        )
        self.retry_exhausted_total = Counter(
            "retry_exhausted_total",
            "Operations that failed after using the whole retry budget",
            ["operation"],
        )

    def inc_attempt(self, operation: str) -> None:
        self.retry_attempts_total.labels(operation=operation).inc()

    def inc_exhausted(self, operation: str) -> None:
        self.retry_exhausted_total.labels(operation=operation).inc()


retry_metrics = _RetryMetrics()
