from __future__ import annotations
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from tailor.core.errors import ProviderClientError, ProviderError, ProviderTransientError
from tailor.core.ports import Fragment, GenerationRequest
from tailor.providers.registry import ProviderRegistry


def _classify_openai_exception(exc: Exception) -> Exception:
    """
    Convert OpenAI/client exceptions into neutral provider errors.
    Avoid hard dependency on specific SDK exception classes by inspecting attributes/message.
    Status and provider code are kept so the retry classifier can see them.
    """
    if isinstance(exc, ProviderError):
        return exc
    status = getattr(exc, "status_code", None) or getattr(exc, "http_status", None)
    code = getattr(exc, "code", None)
    msg = str(exc)

    if status is not None:
        s = int(status)
        if s == 429 or 500 <= s <= 599:
            return ProviderTransientError(msg, status_code=s, code=code)
        if 400 <= s < 500:
            return ProviderClientError(msg, status_code=s, code=code)
        return ProviderError(msg, status_code=s, code=code)

    lower = msg.lower()
    name = type(exc).__name__.lower()
    if "timeout" in name or "connection" in name:
        return ProviderTransientError(msg or type(exc).__name__, code=code)
    if any(k in lower for k in ("invalid_request_error", "unsupported", "authentication")):
        return ProviderClientError(msg, code=code)
    # Unknown: keep the original so classification stays fail-closed
    return exc


@ProviderRegistry.register("openai")
class OpenAIAdapter:
    """
    Thin adapter over the async chat-completions API:
    - 'params' in provider_cfg are passed straight through (temperature, top_p, ...)
    - reasoning deltas (where a compatible server sends them) become thought fragments
    - maps SDK errors to neutral ProviderClientError / ProviderTransientError
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
    ):
        self.model = model
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        if organization:
            client_kwargs["organization"] = organization
        self.client = AsyncOpenAI(**client_kwargs)

        self.params = params or {}
        self.timeout = timeout

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> "OpenAIAdapter":
        api_key = secrets.require("openai")

        cfg = provider_cfg or {}
        return cls(
            model=model_name,
            api_key=api_key,
            params=cfg.get("params") or {},
            timeout=cfg.get("timeout"),
            base_url=cfg.get("base_url"),
            organization=cfg.get("organization"),
        )

    def _messages(self, request: GenerationRequest) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    def _build_args(self, request: GenerationRequest, *, stream: bool) -> Dict[str, Any]:
        params = dict(self.params)
        # chat-completions has no top_k and names the token cap differently
        params.pop("top_k", None)
        if "max_output_tokens" in params:
            params["max_tokens"] = params.pop("max_output_tokens")
        args: Dict[str, Any] = {
            "model": self.model,
            "messages": self._messages(request),
            "stream": stream,
            **params,
        }
        if self.timeout is not None:
            args["timeout"] = self.timeout
        return args

    async def generate(self, request: GenerationRequest) -> str:
        try:
            resp = await self.client.chat.completions.create(**self._build_args(request, stream=False))
        except Exception as e:
            mapped = _classify_openai_exception(e)
            if mapped is e:
                raise
            raise mapped from e
        msg = resp.choices[0].message
        return msg.content or ""

    async def open_stream(self, request: GenerationRequest) -> AsyncIterator[Fragment]:
        try:
            stream = await self.client.chat.completions.create(**self._build_args(request, stream=True))
        except Exception as e:
            mapped = _classify_openai_exception(e)
            if mapped is e:
                raise
            raise mapped from e
        return self._fragments(stream, include_thoughts=request.include_thoughts)

    async def _fragments(self, stream, *, include_thoughts: bool) -> AsyncIterator[Fragment]:
        try:
            async for chunk in stream:
                choices = getattr(chunk, "choices", None) or []
                if not choices:
                    continue
                delta = getattr(choices[0], "delta", None)
                if delta is None:
                    continue
                reasoning = getattr(delta, "reasoning_content", None)
                if reasoning and include_thoughts:
                    yield Fragment(text=reasoning, thought=True, raw=chunk)
                piece = getattr(delta, "content", None)
                if piece:
                    yield Fragment(text=piece, raw=chunk)
        except Exception as e:
            mapped = _classify_openai_exception(e)
            if mapped is e:
                raise
            raise mapped from e
