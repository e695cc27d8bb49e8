from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from tailor.bootstrap import DEFAULT_SYSTEM_PROMPT, build_provider
from tailor.config_loader import KNOWN_PROVIDERS, load_config, ConfigError
from tailor.core.resume_session import TailoredResumeSession
from tailor.resilience.cancellation import CancellationToken


class GenerateRequest(BaseModel):
    profile: Dict[str, Any]
    job_description: str = Field(..., min_length=1)


def create_app(
    config_path: Path,
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> FastAPI:
    load_dotenv()
    config_path = Path(config_path)
    cfg = load_config(config_path)

    if provider:
        cfg["model"]["provider"] = str(provider).lower()
        if cfg["model"]["provider"] not in KNOWN_PROVIDERS:
            raise ConfigError(
                f"Unknown model.provider '{cfg['model']['provider']}' (expected one of {', '.join(KNOWN_PROVIDERS)})."
            )
    if model:
        cfg["model"]["name"] = model

    provider_obj = build_provider(cfg)

    app = FastAPI()
    app.state.cfg = cfg
    app.state.provider = provider_obj
    app.state.system_prompt = (cfg.get("prompts") or {}).get("system") or DEFAULT_SYSTEM_PROMPT
    # generation id -> token; single event loop, so no lock needed
    app.state.generations = {}

    @app.get("/api/config")
    def api_config():
        retry = provider_obj.retry
        timeouts = provider_obj.timeouts
        return JSONResponse(
            {
                "provider": cfg["model"]["provider"],
                "model": cfg["model"]["name"],
                "retry": {"max_retries": retry.max_retries, "base_delay": retry.base_delay,
                          "max_delay": retry.max_delay},
                "timeouts": {
                    "connection": timeouts.connection_timeout,
                    "request": timeouts.request_timeout,
                    "first_fragment": timeouts.first_fragment_timeout,
                    "heartbeat": timeouts.heartbeat_interval,
                },
            }
        )

    @app.post("/api/generate")
    async def api_generate(req: GenerateRequest):
        if not req.job_description.strip():
            raise HTTPException(status_code=400, detail="Empty job description")

        generation_id = uuid.uuid4().hex
        cancel = CancellationToken()
        app.state.generations[generation_id] = cancel
        session = TailoredResumeSession(app.state.provider, system=app.state.system_prompt)

        async def gen():
            try:
                async for update in session.updates(req.profile, req.job_description, cancel):
                    if update.kind == "output":
                        yield update.text
                    elif update.kind == "reset":
                        yield "\n[restarted]\n"
                result = session.result
                if result.state == "cancelled":
                    yield "\n[cancelled]"
                elif result.state == "error":
                    yield f"\n[error] {result.message}"
            finally:
                app.state.generations.pop(generation_id, None)

        return StreamingResponse(gen(), media_type="text/plain",
                                 headers={"X-Generation-Id": generation_id})

    @app.post("/api/generations/{generation_id}/cancel")
    async def api_cancel(generation_id: str):
        token = app.state.generations.get(generation_id)
        if token is None:
            raise HTTPException(status_code=404, detail="Unknown generation")
        token.cancel()
        return JSONResponse({"generation_id": generation_id, "cancelled": True})

    return app


def run(
    *,
    config: Path,
    host: str = "127.0.0.1",
    port: int = 8000,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> None:
    import uvicorn

    app = create_app(config, provider=provider, model=model)
    uvicorn.run(app, host=host, port=port)
