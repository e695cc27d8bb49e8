from __future__ import annotations
import random
from typing import Callable

JITTER_RATIO = 0.3


def compute_backoff(attempt: int, base_delay: float, max_delay: float,
                    rng: Callable[[], float] = random.random) -> float:
    """
    Exponential backoff with up to 30% positive jitter, capped at max_delay.
    `attempt` is 0-based: the delay before the second attempt uses attempt=0.
    """
    exponential = base_delay * (2 ** attempt)
    jitter = exponential * JITTER_RATIO * rng()
    return min(exponential + jitter, max_delay)
