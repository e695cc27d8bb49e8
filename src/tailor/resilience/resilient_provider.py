from __future__ import annotations
import random
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Literal, Optional

from tailor.core.error_messages import translate
from tailor.core.errors import (
    GenerationCancelled,
    RetryExhaustedError,
    TerminalGenerationError,
)
from tailor.core.ports import Fragment, GenerationRequest, Provider
from tailor.resilience.backoff import compute_backoff
from tailor.resilience.cancellation import (
    CancellationToken,
    cancellable_sleep,
    race_cancel,
    raise_if_cancelled,
)
from tailor.resilience.classifier import classify
from tailor.resilience.events import ClientEvent, EventSink, LoggingEventSink
from tailor.resilience.policy import RetryPolicy, TimeoutPolicy
from tailor.resilience.stream_monitor import monitor_stream
from tailor.resilience.timeouts import with_timeout

Outcome = Literal["success", "retryable-failure", "terminal-failure", "cancelled"]


@dataclass
class Attempt:
    index: int                                    # 0-based
    started_at: float
    connection_established_at: Optional[float] = None
    first_fragment_at: Optional[float] = None
    ended_at: Optional[float] = None
    fragment_count: int = 0
    outcome: Optional[Outcome] = None

    @property
    def number(self) -> int:
        return self.index + 1


_EXHAUSTED = object()


async def _next_fragment(iterator: AsyncIterator[Fragment]):
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return _EXHAUSTED


class ResilientProvider:
    """
    Wraps a Provider so one logical call survives transient failures.

    Every retry re-sends the whole request: fragments already yielded by a failed
    attempt are not revoked, so a caller accumulating text must reset its buffer
    when an `attempt_started` event with attempt > 1 is emitted.
    """

    def __init__(
        self,
        inner: Provider,
        retry: Optional[RetryPolicy] = None,
        timeouts: Optional[TimeoutPolicy] = None,
        *,
        events: Optional[EventSink] = None,
        rng: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.inner = inner
        self.retry = retry or RetryPolicy()
        self.timeouts = timeouts or TimeoutPolicy()
        self.events = events or LoggingEventSink()
        self.rng = rng
        self.clock = clock
        self.model = getattr(inner, "model", "unknown")

    # ----- failure handling shared by stream() and generate() -----

    async def _recover(self, exc: Exception, attempt: Attempt, cancel: Optional[CancellationToken],
                       sink: EventSink, context: str) -> None:
        """Either sleep (cancellably) before the next attempt or raise the final error."""
        attempt.ended_at = self.clock()
        classified = classify(exc)
        error_type = type(exc).__name__

        if not classified.is_retryable or attempt.number >= self.retry.total_attempts:
            attempt.outcome = "retryable-failure" if classified.is_retryable else "terminal-failure"
            message = translate(exc, context, classified=classified)
            sink.emit(ClientEvent("failed", attempt.number, {
                "error_type": error_type,
                "category": classified.category.value,
                "retryable": classified.is_retryable,
                "error": classified.message,
            }))
            err_cls = RetryExhaustedError if classified.is_retryable else TerminalGenerationError
            raise err_cls(
                message,
                category=classified.category,
                attempts=attempt.number,
                classified=classified,
            ) from exc

        attempt.outcome = "retryable-failure"
        delay = compute_backoff(attempt.index, self.retry.base_delay, self.retry.max_delay, self.rng)
        sink.emit(ClientEvent("retry_scheduled", attempt.number, {
            "max_attempts": self.retry.total_attempts,
            "error_type": error_type,
            "category": classified.category.value,
            "delay": delay,
            "fragments_discarded": attempt.fragment_count,
        }))
        try:
            await cancellable_sleep(delay, cancel, attempts=attempt.number)
        except GenerationCancelled:
            self._cancelled(attempt, sink)
            raise

    def _cancelled(self, attempt: Attempt, sink: EventSink) -> None:
        attempt.outcome = "cancelled"
        attempt.ended_at = self.clock()
        sink.emit(ClientEvent("cancelled", attempt.number, {"fragments": attempt.fragment_count}))

    def _stop_if_cancelled(self, cancel: Optional[CancellationToken], index: int, sink: EventSink) -> None:
        """Checked before each attempt starts; `index` attempts have already run."""
        if cancel is not None and cancel.cancelled:
            sink.emit(ClientEvent("cancelled", index, {"fragments": 0}))
            raise GenerationCancelled(attempts=index)

    # ----- public API -----

    async def stream(self, request: GenerationRequest, cancel: Optional[CancellationToken] = None,
                     *, events: Optional[EventSink] = None) -> AsyncIterator[Fragment]:
        sink = events or self.events
        policy = self.timeouts
        call_started = self.clock()
        index = 0

        while True:
            self._stop_if_cancelled(cancel, index, sink)
            attempt = Attempt(index=index, started_at=self.clock())
            sink.emit(ClientEvent("attempt_started", attempt.number,
                                  {"max_attempts": self.retry.total_attempts, "model": self.model}))
            try:
                upstream = await race_cancel(
                    with_timeout(self.inner.open_stream(request), policy.connection_timeout, "connection"),
                    cancel,
                    attempt.number,
                )
                attempt.connection_established_at = self.clock()
                sink.emit(ClientEvent("connected", attempt.number,
                                      {"connect": attempt.connection_established_at - attempt.started_at}))

                monitored = monitor_stream(
                    upstream,
                    first_fragment_timeout=policy.first_fragment_timeout,
                    heartbeat_interval=policy.heartbeat_interval,
                    on_timeout=lambda a=attempt: sink.emit(ClientEvent(
                        "first_fragment_timeout", a.number, {"timeout": policy.first_fragment_timeout})),
                    on_heartbeat_warning=lambda elapsed, a=attempt: sink.emit(ClientEvent(
                        "heartbeat_warning", a.number,
                        {"elapsed": elapsed, "threshold": policy.heartbeat_interval})),
                    clock=self.clock,
                )
                try:
                    while True:
                        raise_if_cancelled(cancel, attempt.number)
                        fragment = await race_cancel(_next_fragment(monitored), cancel, attempt.number)
                        if fragment is _EXHAUSTED:
                            break
                        raise_if_cancelled(cancel, attempt.number)
                        if attempt.first_fragment_at is None:
                            attempt.first_fragment_at = self.clock()
                            sink.emit(ClientEvent("first_fragment", attempt.number, {
                                "since_connected": attempt.first_fragment_at - attempt.connection_established_at,
                                "since_call_start": attempt.first_fragment_at - call_started,
                            }))
                        attempt.fragment_count += 1
                        yield fragment
                finally:
                    await monitored.aclose()

                attempt.outcome = "success"
                attempt.ended_at = self.clock()
                sink.emit(ClientEvent("completed", attempt.number, {
                    "fragments": attempt.fragment_count,
                    "attempts": attempt.number,
                    "total": attempt.ended_at - call_started,
                }))
                return
            except GenerationCancelled:
                self._cancelled(attempt, sink)
                raise
            except Exception as exc:
                await self._recover(exc, attempt, cancel, sink, "stream")
            index += 1

    async def generate(self, request: GenerationRequest, cancel: Optional[CancellationToken] = None,
                       *, events: Optional[EventSink] = None) -> str:
        sink = events or self.events
        call_started = self.clock()
        index = 0

        while True:
            self._stop_if_cancelled(cancel, index, sink)
            attempt = Attempt(index=index, started_at=self.clock())
            sink.emit(ClientEvent("attempt_started", attempt.number,
                                  {"max_attempts": self.retry.total_attempts, "model": self.model}))
            try:
                text = await race_cancel(
                    with_timeout(self.inner.generate(request), self.timeouts.request_timeout, "request"),
                    cancel,
                    attempt.number,
                )
                attempt.outcome = "success"
                attempt.ended_at = self.clock()
                sink.emit(ClientEvent("completed", attempt.number, {
                    "fragments": 1,
                    "attempts": attempt.number,
                    "total": attempt.ended_at - call_started,
                }))
                return text
            except GenerationCancelled:
                self._cancelled(attempt, sink)
                raise
            except Exception as exc:
                await self._recover(exc, attempt, cancel, sink, "generate")
            index += 1
