# tests/unit/test_retry_classifier.py

from __future__ import annotations
import socket
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from tailor.core.errors import (
    ErrorCategory,
    OperationTimeoutError,
    ProviderClientError,
    ProviderError,
    ProviderTransientError,
)
from tailor.resilience.classifier import classify, is_retryable


class StatusError(Exception):
    def __init__(self, msg="", status=None, code=None):
        super().__init__(msg)
        self.status = status
        self.code = code


# -------- retryable --------

@pytest.mark.parametrize("msg", [
    "The model is overloaded. Please try again later.",
    "Rate limit reached for requests",
    "Quota exceeded for this project",
    "503 Service Unavailable",
    "temporary failure in name resolution",
    "request timeout",
    "Connection reset by peer",
    "network is unreachable",
    "read ECONNRESET",
])
def test_transient_messages_are_retryable(msg):
    assert is_retryable(RuntimeError(msg)) is True


@pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
def test_transient_status_codes_are_retryable(status):
    assert is_retryable(ProviderError("boom", status_code=status)) is True
    assert is_retryable(StatusError("boom", status=status)) is True


@pytest.mark.parametrize("exc", [
    TimeoutError(),
    ConnectionResetError(),
    ConnectionRefusedError(),
    socket.gaierror(-2, "Name or service not known"),
    OperationTimeoutError("slow", timeout=1.0),
    ProviderTransientError("flaky upstream"),
])
def test_network_family_is_retryable(exc):
    assert is_retryable(exc) is True


@pytest.mark.parametrize("code", ["RATE_LIMIT_EXCEEDED", "quota_exceeded", "model_overloaded", "UNAVAILABLE"])
def test_provider_codes_are_retryable(code):
    assert is_retryable(ProviderError("boom", code=code)) is True


# -------- terminal --------

@pytest.mark.parametrize("status", [401, 403])
def test_auth_status_wins_over_timeout_message(status):
    exc = ProviderError("upstream timeout while checking credentials", status_code=status)
    assert is_retryable(exc) is False
    assert classify(exc).category is ErrorCategory.AUTH_FAILURE


@pytest.mark.parametrize("status", [400, 404, 408, 422])
def test_other_client_errors_are_terminal(status):
    assert is_retryable(StatusError("connection details invalid", status=status)) is False


def test_auth_keyword_wins_over_network_keyword():
    assert is_retryable(RuntimeError("network call failed: Invalid API key")) is False


def test_provider_client_error_is_terminal():
    assert is_retryable(ProviderClientError("unsupported parameter")) is False


def test_unknown_errors_fail_closed():
    assert is_retryable(ValueError("nah")) is False
    assert is_retryable(KeyError("missing")) is False


def test_classification_is_deterministic():
    exc = ProviderError("The model is overloaded", status_code=503)
    first = classify(exc)
    for _ in range(5):
        again = classify(exc)
        assert (again.is_retryable, again.category) == (first.is_retryable, first.category)


# -------- categories --------

@pytest.mark.parametrize("exc, category", [
    (ProviderError("slow down", status_code=429), ErrorCategory.RATE_LIMITED),
    (RuntimeError("quota exceeded"), ErrorCategory.RATE_LIMITED),
    (ProviderError("busy", status_code=503), ErrorCategory.OVERLOADED),
    (RuntimeError("model is overloaded"), ErrorCategory.OVERLOADED),
    (ProviderError("gateway", status_code=504), ErrorCategory.TIMEOUT),
    (OperationTimeoutError("slow", timeout=1.0), ErrorCategory.TIMEOUT),
    (ProviderError("bad gateway", status_code=502), ErrorCategory.NETWORK),
    (ConnectionResetError(), ErrorCategory.NETWORK),
    (ProviderError("nope", status_code=401), ErrorCategory.AUTH_FAILURE),
    (ProviderError("bad field", status_code=422), ErrorCategory.VALIDATION_FAILURE),
    (ProviderClientError("unsupported parameter"), ErrorCategory.VALIDATION_FAILURE),
    (ValueError("nah"), ErrorCategory.UNKNOWN),
])
def test_categories(exc, category):
    classified = classify(exc)
    assert classified.category is category
    assert classified.cause is exc
