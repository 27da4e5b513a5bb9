from __future__ import annotations

import random

JITTER_RATIO = 0.1


def compute_backoff(
    attempt: int,
    initial_delay: float,
    backoff_factor: float,
    max_delay: float,
) -> float:
    """
    Exponential delay in seconds after the *attempt*-th failure, capped.

    ``min(initial_delay * backoff_factor ** (attempt - 1), max_delay)``
    """
    return min(initial_delay * backoff_factor ** (attempt - 1), max_delay)


def apply_jitter(delay: float, ratio: float = JITTER_RATIO) -> float:
    """
    Add a uniform random value in [0, ratio * delay] to a base delay.

    Decorrelates retries from independent callers hitting the same upstream.
    """
    base = max(0.0, delay)
    return base + random.uniform(0.0, ratio * base)
