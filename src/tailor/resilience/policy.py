from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_retries: retries after the initial attempt (total attempts = max_retries + 1).
    base_delay / max_delay: backoff bounds in seconds.
    """
    max_retries: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        # "not x > 0" so NaN is refused too
        if not self.base_delay > 0:
            raise ValueError("base_delay must be positive")
        if not self.max_delay >= self.base_delay:
            raise ValueError("max_delay must be >= base_delay")

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class TimeoutPolicy:
    """
    connection_timeout: opening the provider stream.
    request_timeout: a whole non-streamed generate() call.
    first_fragment_timeout: connection ready -> first fragment.
    heartbeat_interval: gap between fragments before a (non-fatal) warning; None disables.
    All in seconds.
    """
    connection_timeout: float = 15.0
    request_timeout: float = 120.0
    first_fragment_timeout: float = 45.0
    heartbeat_interval: Optional[float] = 10.0

    def __post_init__(self):
        for name in ("connection_timeout", "request_timeout", "first_fragment_timeout"):
            if not getattr(self, name) > 0:
                raise ValueError(f"{name} must be positive")
        if self.heartbeat_interval is not None and not self.heartbeat_interval > 0:
            raise ValueError("heartbeat_interval must be positive")
