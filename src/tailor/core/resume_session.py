from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, List, Literal, Mapping, Optional, Tuple

from tailor.core.errors import ErrorCategory, GenerationCancelled, GenerationError
from tailor.core.ports import GenerationRequest
from tailor.core.prompts import build_tailored_resume_prompt
from tailor.resilience.cancellation import CancellationToken
from tailor.resilience.events import ClientEvent, EventSink
from tailor.resilience.resilient_provider import ResilientProvider

UpdateKind = Literal["thinking", "output", "reset"]
State = Literal["completed", "cancelled", "error"]

_TITLE = re.compile(r"\*\*(.*?)\*\*")


@dataclass
class ThinkingStep:
    title: str
    content: str


@dataclass(frozen=True)
class GenerationUpdate:
    kind: UpdateKind
    text: str = ""
    steps: Tuple[ThinkingStep, ...] = ()


@dataclass
class GenerationResult:
    state: State
    resume: str
    thinking_steps: List[ThinkingStep] = field(default_factory=list)
    message: Optional[str] = None
    category: Optional[ErrorCategory] = None
    attempts: int = 0


class _AttemptTracker:
    """Forwards client events and resets the session when a new attempt starts."""

    def __init__(self, inner: EventSink, on_new_attempt):
        self.inner = inner
        self.on_new_attempt = on_new_attempt
        self.attempt = 0

    def emit(self, event: ClientEvent) -> None:
        if event.kind == "attempt_started":
            if self.attempt:
                self.on_new_attempt()
            self.attempt = event.attempt
        self.inner.emit(event)


class TailoredResumeSession:
    """
    Drives one tailored-resume generation and keeps what the UI shows: the
    resume text so far and the model's thinking steps. Output from a failed
    attempt is dropped when the client starts over.
    """

    def __init__(self, provider: ResilientProvider, system: Optional[str] = None):
        self.provider = provider
        self.system = system
        self.result: Optional[GenerationResult] = None
        self._reset()

    def _reset(self) -> None:
        self._resume_parts: List[str] = []
        self._thought = ""
        self.steps: List[ThinkingStep] = []
        self._pending_reset = False

    def _new_attempt(self) -> None:
        self._reset()
        self._pending_reset = True

    @property
    def resume(self) -> str:
        return "".join(self._resume_parts)

    def _add_thought(self, text: str) -> None:
        self._thought += text
        titles = list(_TITLE.finditer(self._thought))
        if not titles:
            return
        last = titles[-1]
        title = last.group(1)
        content = self._thought[last.end():].strip()
        if self.steps and self.steps[-1].title == title:
            self.steps[-1].content = content
        else:
            self.steps.append(ThinkingStep(title=title, content=content))

    def _finish(self, state: State, attempts: int, error: Optional[GenerationError] = None) -> None:
        self.result = GenerationResult(
            state=state,
            resume=self.resume,
            thinking_steps=list(self.steps),
            message=error.user_message if error else None,
            category=error.category if error else None,
            attempts=attempts,
        )

    async def updates(self, profile: Mapping[str, Any], job_description: str,
                      cancel: Optional[CancellationToken] = None) -> AsyncIterator[GenerationUpdate]:
        self._reset()
        self.result = None
        request = GenerationRequest(
            prompt=build_tailored_resume_prompt(profile, job_description),
            system=self.system,
        )
        tracker = _AttemptTracker(self.provider.events, self._new_attempt)
        fragments = self.provider.stream(request, cancel, events=tracker)
        try:
            async for fragment in fragments:
                if self._pending_reset:
                    self._pending_reset = False
                    yield GenerationUpdate("reset")
                if fragment.thought:
                    self._add_thought(fragment.text)
                    yield GenerationUpdate("thinking", fragment.text, tuple(self.steps))
                else:
                    self._resume_parts.append(fragment.text)
                    yield GenerationUpdate("output", fragment.text)
        except GenerationCancelled as exc:
            self._finish("cancelled", exc.attempts or tracker.attempt)
            return
        except GenerationError as exc:
            self._finish("error", exc.attempts, exc)
            return
        else:
            self._finish("completed", tracker.attempt)
        finally:
            await fragments.aclose()
            if self.result is None:
                # consumer stopped iterating early
                self._finish("cancelled", tracker.attempt)

    async def run(self, profile: Mapping[str, Any], job_description: str,
                  cancel: Optional[CancellationToken] = None) -> GenerationResult:
        async for _ in self.updates(profile, job_description, cancel):
            pass
        return self.result
