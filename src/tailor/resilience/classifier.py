from __future__ import annotations
import errno
import socket
from typing import Optional, Tuple

from tailor.core.errors import (
    ClassifiedError,
    ErrorCategory,
    ProviderClientError,
    ProviderTransientError,
)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

_RETRYABLE_KEYWORDS = (
    "overloaded",
    "rate limit",
    "quota",
    "try again later",
    "service unavailable",
    "temporary",
    "timeout",
    "connection",
    "network",
    "econnreset",
    "etimedout",
    "econnrefused",
)

_TERMINAL_KEYWORDS = (
    "unauthorized",
    "forbidden",
    "authentication",
    "invalid api key",
    "invalid key",
)

_NETWORK_TYPE_NAMES = (
    "networkerror",
    "timeouterror",
    "timeout",
    "connectionerror",
    "connecterror",
    "econnreset",
    "etimedout",
    "econnrefused",
    "enotfound",
    "gaierror",
)

_PROVIDER_CODE_KEYWORDS = ("rate_limit", "quota", "overload", "unavailable")

_TRANSIENT_ERRNOS = frozenset({errno.ECONNRESET, errno.ETIMEDOUT, errno.ECONNREFUSED})


def _status_of(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "http_status", "code"):
        val = getattr(exc, attr, None)
        if isinstance(val, bool) or val is None:
            continue
        if isinstance(val, int):
            return val
        if isinstance(val, str) and val.strip().isdigit():
            return int(val.strip())
    return None


def _provider_code_of(exc: BaseException) -> str:
    for attr in ("code", "status"):
        val = getattr(exc, attr, None)
        if isinstance(val, str) and not val.strip().isdigit():
            return val.lower()
    return ""


def _message_of(exc: BaseException) -> str:
    msg = str(exc) or type(exc).__name__
    return msg.lower()


def _type_names(exc: BaseException) -> Tuple[str, ...]:
    return tuple(k.__name__.lower() for k in type(exc).__mro__)


def _is_network_family(exc: BaseException) -> bool:
    if isinstance(exc, (TimeoutError, ConnectionError, socket.gaierror, ProviderTransientError)):
        return True
    if isinstance(exc, OSError) and exc.errno in _TRANSIENT_ERRNOS:
        return True
    names = _type_names(exc)
    return any(n in name for name in names for n in _NETWORK_TYPE_NAMES)


def _is_terminal(exc: BaseException, status: Optional[int], msg: str) -> bool:
    if isinstance(exc, ProviderClientError):
        return True
    if status in (401, 403):
        return True
    if status is not None and 400 <= status < 500 and status != 429:
        return True
    return any(k in msg for k in _TERMINAL_KEYWORDS)


def is_retryable(exc: BaseException) -> bool:
    """
    Decide whether a failure is transient. Auth/validation failures always win
    as terminal; unknown errors are not retried.
    """
    status = _status_of(exc)
    msg = _message_of(exc)

    if _is_terminal(exc, status, msg):
        return False
    if any(k in msg for k in _RETRYABLE_KEYWORDS):
        return True
    if status in RETRYABLE_STATUS:
        return True
    if _is_network_family(exc):
        return True
    code = _provider_code_of(exc)
    if code and any(k in code for k in _PROVIDER_CODE_KEYWORDS):
        return True
    return False


def _category(exc: BaseException, status: Optional[int], msg: str, code: str) -> ErrorCategory:
    if status in (401, 403) or any(k in msg for k in _TERMINAL_KEYWORDS):
        return ErrorCategory.AUTH_FAILURE
    if status is not None and 400 <= status < 500 and status != 429:
        return ErrorCategory.VALIDATION_FAILURE
    if isinstance(exc, ProviderClientError):
        return ErrorCategory.VALIDATION_FAILURE
    if status == 429 or "rate limit" in msg or "quota" in msg or "rate_limit" in code or "quota" in code:
        return ErrorCategory.RATE_LIMITED
    if status == 503 or "overload" in msg or "unavailable" in msg or "overload" in code or "unavailable" in code:
        return ErrorCategory.OVERLOADED
    if status == 504 or isinstance(exc, TimeoutError) or "timeout" in msg or "timed out" in msg:
        return ErrorCategory.TIMEOUT
    if status == 502 or "connection" in msg or "network" in msg or _is_network_family(exc):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def classify(exc: BaseException) -> ClassifiedError:
    status = _status_of(exc)
    msg = _message_of(exc)
    code = _provider_code_of(exc)
    return ClassifiedError(
        is_retryable=is_retryable(exc),
        category=_category(exc, status, msg, code),
        message=str(exc) or type(exc).__name__,
        cause=exc,
    )
