# tests/unit/test_error_messages.py

from __future__ import annotations
import logging
import sys
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from tailor.core.error_messages import DEFAULT_MESSAGE, message_for, translate
from tailor.core.errors import ErrorCategory, ProviderError


def test_every_category_has_a_message():
    for category in ErrorCategory:
        assert message_for(category)
    assert message_for(ErrorCategory.UNKNOWN) == DEFAULT_MESSAGE


def test_translate_hides_raw_error_but_logs_it(caplog):
    err = ProviderError("upstream said: secret-internal-detail", status_code=429)
    with caplog.at_level(logging.ERROR, logger="tailor.core.error_messages"):
        msg = translate(err, "stream")

    assert msg == message_for(ErrorCategory.RATE_LIMITED)
    assert "secret-internal-detail" not in msg
    assert "secret-internal-detail" in caplog.text
    assert "rate_limited" in caplog.text


def test_translate_unknown_error_uses_default():
    assert translate(RuntimeError("weird")) == DEFAULT_MESSAGE


def test_translate_is_stable_for_same_category():
    a = translate(ProviderError("x", status_code=503))
    b = translate(ProviderError("model is overloaded"))
    assert a == b == message_for(ErrorCategory.OVERLOADED)
