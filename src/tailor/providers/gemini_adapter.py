from __future__ import annotations
from typing import Any, AsyncIterator, Dict, Optional

from google import genai
from google.genai import types

from tailor.core.errors import ProviderClientError, ProviderError, ProviderTransientError
from tailor.core.ports import Fragment, GenerationRequest
from tailor.providers.registry import ProviderRegistry

_CONFIG_PARAMS = ("temperature", "top_p", "top_k", "max_output_tokens")


def _classify_gemini_exception(exc: Exception) -> Exception:
    """
    google-genai raises errors.APIError (ClientError for 4xx, ServerError for 5xx)
    with an int `code` (HTTP status) and a string `status` (e.g. "UNAVAILABLE").
    Network failures surface as raw httpx exceptions and pass through untouched.
    """
    if isinstance(exc, ProviderError):
        return exc
    status = getattr(exc, "code", None)
    if not isinstance(status, int) or isinstance(status, bool):
        return exc
    provider_code = getattr(exc, "status", None)
    msg = getattr(exc, "message", None) or str(exc)
    if status == 429 or 500 <= status <= 599:
        return ProviderTransientError(msg, status_code=status, code=provider_code)
    if 400 <= status < 500:
        return ProviderClientError(msg, status_code=status, code=provider_code)
    return ProviderError(msg, status_code=status, code=provider_code)


@ProviderRegistry.register("gemini")
class GeminiAdapter:
    """
    Adapter over the google-genai async client. Candidate parts flagged as
    thoughts are streamed as thought fragments so callers can show reasoning.
    """

    def __init__(self, model: str, api_key: str, *, params: Optional[Dict[str, Any]] = None,
                 include_thoughts: bool = True, client: Any = None):
        self.model = model
        self.client = client or genai.Client(api_key=api_key)
        self.params = {k: v for k, v in (params or {}).items() if k in _CONFIG_PARAMS}
        self.include_thoughts = include_thoughts

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> "GeminiAdapter":
        api_key = secrets.require("gemini")
        cfg = provider_cfg or {}
        return cls(
            model=model_name,
            api_key=api_key,
            params=cfg.get("params") or {},
            include_thoughts=bool(cfg.get("include_thoughts", True)),
        )

    def _config(self, request: GenerationRequest, *, stream: bool) -> types.GenerateContentConfig:
        kwargs: Dict[str, Any] = dict(self.params)
        if request.system:
            kwargs["system_instruction"] = request.system
        if stream and self.include_thoughts and request.include_thoughts:
            kwargs["thinking_config"] = types.ThinkingConfig(include_thoughts=True)
        return types.GenerateContentConfig(**kwargs)

    async def generate(self, request: GenerationRequest) -> str:
        try:
            resp = await self.client.aio.models.generate_content(
                model=self.model,
                contents=request.prompt,
                config=self._config(request, stream=False),
            )
        except Exception as e:
            mapped = _classify_gemini_exception(e)
            if mapped is e:
                raise
            raise mapped from e
        return resp.text or ""

    async def open_stream(self, request: GenerationRequest) -> AsyncIterator[Fragment]:
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=self.model,
                contents=request.prompt,
                config=self._config(request, stream=True),
            )
        except Exception as e:
            mapped = _classify_gemini_exception(e)
            if mapped is e:
                raise
            raise mapped from e
        return self._fragments(stream)

    async def _fragments(self, stream) -> AsyncIterator[Fragment]:
        try:
            async for chunk in stream:
                candidates = getattr(chunk, "candidates", None) or []
                if not candidates:
                    continue
                content = getattr(candidates[0], "content", None)
                for part in (getattr(content, "parts", None) or []):
                    text = getattr(part, "text", None)
                    if text:
                        yield Fragment(text=text, thought=bool(getattr(part, "thought", False)), raw=chunk)
        except Exception as e:
            mapped = _classify_gemini_exception(e)
            if mapped is e:
                raise
            raise mapped from e
