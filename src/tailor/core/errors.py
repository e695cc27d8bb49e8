from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class ErrorCategory(str, Enum):
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    TIMEOUT = "timeout"
    NETWORK = "network"
    AUTH_FAILURE = "auth_failure"
    VALIDATION_FAILURE = "validation_failure"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifiedError:
    is_retryable: bool
    category: ErrorCategory
    message: str
    cause: BaseException


class ProviderError(Exception):
    """Base class for provider-level failures."""

    def __init__(self, message: str = "", *, status_code: Optional[int] = None,
                 code: Optional[Union[str, int]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class ProviderClientError(ProviderError):
    """
    Non-retryable: caller/config issue (4xx invalid request, auth, unknown model,
    unsupported parameter, etc.). The fix is change input/config, not retry.
    """


class ProviderTransientError(ProviderError):
    """
    Retryable: rate limits, timeouts, network hiccups, 5xx, etc.
    Retrying with backoff is appropriate.
    """


class OperationTimeoutError(TimeoutError):
    """An awaited operation did not settle before its deadline."""

    def __init__(self, message: str, *, timeout: float, label: str = "operation"):
        super().__init__(message)
        self.timeout = timeout
        self.label = label


class StreamTimeoutError(OperationTimeoutError):
    """The first fragment of a stream arrived after the first-fragment deadline."""


class GenerationCancelled(Exception):
    """
    The caller's cancellation token was set. Never classified and never retried,
    so callers can tell "user aborted" apart from "system failed".
    """

    def __init__(self, message: str = "Generation cancelled by user", *, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class GenerationError(Exception):
    """
    Failure of one logical generation call, after any internal retries.
    `user_message` is safe to show; the raw provider error stays on `__cause__`.
    """

    def __init__(self, user_message: str, *, category: ErrorCategory, attempts: int,
                 classified: Optional[ClassifiedError] = None):
        super().__init__(user_message)
        self.user_message = user_message
        self.category = category
        self.attempts = attempts
        self.classified = classified


class TerminalGenerationError(GenerationError):
    """Non-retryable failure, surfaced on first occurrence."""


class RetryExhaustedError(GenerationError):
    """Every allowed attempt failed with a retryable error; `category` is the last one seen."""
