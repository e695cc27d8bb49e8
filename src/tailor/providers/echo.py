from __future__ import annotations
import asyncio
from typing import Any, AsyncIterator, Dict, List, Optional

from tailor.core.ports import Fragment, GenerationRequest
from tailor.providers.registry import ProviderRegistry

_SAMPLE_RESUME = (
    "# Jane Doe\n"
    "jane@example.com | linkedin.com/in/janedoe\n\n"
    "## Professional Summary\n"
    "Backend engineer with seven years building reliable data services.\n\n"
    "## Professional Experience\n"
    "- Led migration of billing pipeline to event-driven architecture\n"
    "- Cut p99 latency of the search API by 40%\n"
).split(" ")

_SAMPLE_THOUGHTS = [
    "**Reading the job description**\nThe role emphasises reliability. ",
    "**Selecting experience**\nBilling migration and latency work match best.",
]


@ProviderRegistry.register("echo")
class EchoProvider:
    """
    Offline stub that streams a fixed sample resume word by word.
    Optional thought fragments are streamed first when the request asks for them.
    """
    model = "echo-resume"

    def __init__(self, token_delay: float = 0.05, words: Optional[List[str]] = None,
                 thoughts: Optional[List[str]] = None):
        self.token_delay = float(token_delay)
        self.words = list(words) if words is not None else list(_SAMPLE_RESUME)
        self.thoughts = list(thoughts) if thoughts is not None else list(_SAMPLE_THOUGHTS)

    @classmethod
    def create(cls, *, model_name: str, provider_cfg: Dict[str, Any], secrets) -> "EchoProvider":
        cfg = provider_cfg or {}
        return cls(
            token_delay=cfg.get("token_delay", 0.05),
            words=cfg.get("words"),
            thoughts=cfg.get("thoughts"),
        )

    async def generate(self, request: GenerationRequest) -> str:
        return " ".join(self.words)

    async def open_stream(self, request: GenerationRequest) -> AsyncIterator[Fragment]:
        thoughts = self.thoughts if request.include_thoughts else []

        async def gen():
            for t in thoughts:
                yield Fragment(text=t, thought=True)
                if self.token_delay > 0:
                    await asyncio.sleep(self.token_delay)
            last_idx = len(self.words) - 1
            for i, w in enumerate(self.words):
                yield Fragment(text=w + ("" if i == last_idx else " "))
                if self.token_delay > 0:
                    await asyncio.sleep(self.token_delay)
        return gen()
