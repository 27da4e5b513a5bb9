from .breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitHealth, CircuitState
from .monitoring import circuit_metrics
from .policies import CircuitBreakerConfig

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerOpenError",
    "CircuitHealth",
    "CircuitState",
    "circuit_metrics",
]
