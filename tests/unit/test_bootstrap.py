# tests/unit/test_bootstrap.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from tailor.bootstrap import DEFAULT_SYSTEM_PROMPT, build_app, build_provider
from tailor.providers.echo import EchoProvider
from tailor.resilience.resilient_provider import ResilientProvider
from tailor.secrets.sources import MissingSecretError


ECHO_CONFIG = """
model:
  provider: echo
  name: echo-model
providers:
  echo:
    token_delay: 0.0
secrets:
  method: env
  mapping: {}
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("TAILOR_MAX_RETRIES", "TAILOR_BASE_DELAY_MS", "TAILOR_MAX_DELAY_MS",
                "TAILOR_CONNECTION_TIMEOUT_MS", "TAILOR_REQUEST_TIMEOUT_MS",
                "TAILOR_FIRST_FRAGMENT_TIMEOUT_MS", "TAILOR_HEARTBEAT_INTERVAL_MS",
                "TAILOR_TEMPERATURE", "TAILOR_TOP_P", "TAILOR_TOP_K", "TAILOR_MAX_OUTPUT_TOKENS"):
        monkeypatch.delenv(key, raising=False)


def test_build_app_echo(tmp_path: Path):
    # Arrange: temp repo with config/default.yaml
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir(parents=True)
    cfg = cfg_dir / "default.yaml"
    cfg.write_text(ECHO_CONFIG, encoding="utf-8")

    # Act
    ctx = build_app(cfg)

    # Assert
    assert isinstance(ctx["provider"], ResilientProvider)
    assert isinstance(ctx["provider"].inner, EchoProvider)
    assert ctx["provider"].inner.token_delay == 0.0
    assert ctx["paths"]["config_dir"] == cfg_dir.resolve()
    assert ctx["cfg"]["model"]["provider"] == "echo"
    assert ctx["system_prompt"] == DEFAULT_SYSTEM_PROMPT


def test_build_provider_reads_policies_from_env(monkeypatch):
    monkeypatch.setenv("TAILOR_MAX_RETRIES", "1")
    monkeypatch.setenv("TAILOR_FIRST_FRAGMENT_TIMEOUT_MS", "2500")
    cfg = {"model": {"provider": "echo", "name": "echo-model"}, "providers": {"echo": {"token_delay": 0}}}

    provider = build_provider(cfg)

    assert provider.retry.max_retries == 1
    assert provider.timeouts.first_fragment_timeout == 2.5
    assert provider.timeouts.connection_timeout == 15.0


def test_build_provider_merges_inference_overrides(monkeypatch):
    seen = {}

    @classmethod
    def create(cls, *, model_name, provider_cfg, secrets):
        seen.update(provider_cfg["params"])
        return cls(token_delay=0)

    monkeypatch.setattr(EchoProvider, "create", create)
    monkeypatch.setenv("TAILOR_TEMPERATURE", "0.9")
    cfg = {
        "model": {"provider": "echo", "name": "echo-model"},
        "providers": {"echo": {"params": {"temperature": 0.1, "top_p": 0.5}}},
    }

    build_provider(cfg)

    assert seen == {"temperature": 0.9, "top_p": 0.5}


def test_build_provider_missing_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    cfg = {
        "model": {"provider": "gemini", "name": "gemini-2.5-pro"},
        "secrets": {"method": "env", "mapping": {"gemini": {"api_key": "GEMINI_API_KEY"}}},
    }
    with pytest.raises(MissingSecretError):
        build_provider(cfg)
