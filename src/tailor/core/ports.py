from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Protocol


@dataclass(frozen=True)
class Fragment:
    """
    One unit yielded by a provider stream. The resilience layer passes it through
    untouched; only callers look at `thought` to split reasoning from output.
    """
    text: str
    thought: bool = False
    raw: Any = None


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    system: Optional[str] = None
    include_thoughts: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)


class Provider(Protocol):
    """
    Interface the core uses to talk to any LLM backend.
    """

    # Optional: surface the model name for logging/headers
    model: str

    async def generate(self, request: GenerationRequest) -> str:
        """
        Single non-streamed call. Returns the full response text.
        """
        ...

    async def open_stream(self, request: GenerationRequest) -> AsyncIterator[Fragment]:
        """
        Streaming call. Awaiting this establishes the connection; the returned
        async iterator yields fragments as they arrive.
        """
        ...
