# tests/unit/test_web_app.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from fastapi.testclient import TestClient

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from tailor.core.error_messages import message_for
from tailor.core.errors import ErrorCategory
from tailor.providers.echo import EchoProvider
from tailor.web.app import create_app


PROFILE = {"personal_info": {"name": "Jane Doe"}, "skills": ["python"]}


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.setenv("TAILOR_MAX_RETRIES", "1")
    monkeypatch.setenv("TAILOR_BASE_DELAY_MS", "1")
    cfg = tmp_path / "default.yaml"
    cfg.write_text(
        """
model:
  provider: echo
  name: echo-model
providers:
  echo:
    token_delay: 0.0
""",
        encoding="utf-8",
    )
    return cfg


def test_config_endpoint(config_path: Path):
    client = TestClient(create_app(config_path))
    data = client.get("/api/config").json()
    assert data["provider"] == "echo"
    assert data["retry"]["max_retries"] == 1
    assert data["timeouts"]["first_fragment"] == 45.0


def test_generate_streams_plain_text(config_path: Path):
    client = TestClient(create_app(config_path))
    resp = client.post("/api/generate", json={"profile": PROFILE, "job_description": "Python role"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.headers["x-generation-id"]
    assert resp.text == " ".join(EchoProvider().words)


def test_generate_rejects_blank_job(config_path: Path):
    client = TestClient(create_app(config_path))
    resp = client.post("/api/generate", json={"profile": PROFILE, "job_description": "   "})
    assert resp.status_code == 400
    resp = client.post("/api/generate", json={"profile": PROFILE, "job_description": ""})
    assert resp.status_code == 422


def test_generate_reports_error_trailer(config_path: Path, monkeypatch):
    async def unauthorized(self, request):
        raise PermissionError("401 unauthorized")

    monkeypatch.setattr(EchoProvider, "open_stream", unauthorized)
    client = TestClient(create_app(config_path))
    resp = client.post("/api/generate", json={"profile": PROFILE, "job_description": "Python role"})

    assert resp.status_code == 200
    assert resp.text == "\n[error] " + message_for(ErrorCategory.AUTH_FAILURE)


def test_cancel_unknown_generation(config_path: Path):
    client = TestClient(create_app(config_path))
    assert client.post("/api/generations/nope/cancel").status_code == 404


def test_cancel_running_generation(config_path: Path):
    app = create_app(config_path)
    client = TestClient(app)
    token_ids = []

    # cancel as soon as the generation registers itself
    original = app.state.generations

    class Registering(dict):
        def __setitem__(self, key, token):
            super().__setitem__(key, token)
            token_ids.append(key)
            token.cancel()

    app.state.generations = Registering(original)
    resp = client.post("/api/generate", json={"profile": PROFILE, "job_description": "Python role"})

    assert resp.text.endswith("\n[cancelled]")
    assert token_ids and token_ids[0] == resp.headers["x-generation-id"]
    # finished generations are forgotten
    assert client.post(f"/api/generations/{token_ids[0]}/cancel").status_code == 404
