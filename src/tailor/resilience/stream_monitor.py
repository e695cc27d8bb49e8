from __future__ import annotations
import asyncio
import logging
import time
from typing import AsyncIterable, AsyncIterator, Callable, Optional, TypeVar

from tailor.core.errors import StreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _MonitorState:
    def __init__(self, now: float):
        self.first_seen = False
        self.timed_out = False
        self.done = False
        self.last_seen = now
        self.deadline: Optional[asyncio.TimerHandle] = None
        self.heartbeat: Optional[asyncio.TimerHandle] = None

    def clear_timers(self) -> None:
        if self.deadline is not None:
            self.deadline.cancel()
            self.deadline = None
        if self.heartbeat is not None:
            self.heartbeat.cancel()
            self.heartbeat = None


async def monitor_stream(
    stream: AsyncIterable[T],
    *,
    first_fragment_timeout: float,
    heartbeat_interval: Optional[float] = None,
    on_timeout: Optional[Callable[[], None]] = None,
    on_heartbeat_warning: Optional[Callable[[float], None]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[T]:
    """
    Pass fragments through unchanged while watching two timers:

    - first-fragment deadline: if it fires before anything arrives, `on_timeout`
      is called and the stream is flagged; a fragment arriving after that is
      rejected with StreamTimeoutError instead of being yielded.
    - heartbeat: armed after the first fragment, re-checks every
      `heartbeat_interval` seconds and calls `on_heartbeat_warning(elapsed)` when
      the gap since the last fragment exceeds the interval. Advisory only.

    Both timers are cleared on every exit path.
    """
    loop = asyncio.get_running_loop()
    state = _MonitorState(clock())

    def _deadline_expired() -> None:
        state.deadline = None
        if state.first_seen or state.done:
            return
        state.timed_out = True
        logger.warning("Stream timeout: no first fragment within %.3fs", first_fragment_timeout)
        if on_timeout is not None:
            on_timeout()

    def _heartbeat_check() -> None:
        state.heartbeat = None
        if state.done:
            return
        elapsed = clock() - state.last_seen
        if elapsed > heartbeat_interval:
            if on_heartbeat_warning is not None:
                on_heartbeat_warning(elapsed)
            else:
                logger.warning(
                    "Stream heartbeat warning: no fragment for %.3fs (threshold %.3fs)",
                    elapsed, heartbeat_interval,
                )
        state.heartbeat = loop.call_later(heartbeat_interval, _heartbeat_check)

    state.deadline = loop.call_later(first_fragment_timeout, _deadline_expired)
    iterator = stream.__aiter__()
    try:
        async for fragment in iterator:
            state.last_seen = clock()
            if not state.first_seen:
                state.first_seen = True
                if state.deadline is not None:
                    state.deadline.cancel()
                    state.deadline = None
                if heartbeat_interval:
                    state.heartbeat = loop.call_later(heartbeat_interval, _heartbeat_check)

            if state.timed_out:
                raise StreamTimeoutError(
                    f"Stream timeout: first fragment did not arrive within {first_fragment_timeout:g}s",
                    timeout=first_fragment_timeout,
                    label="first fragment",
                )
            yield fragment
    finally:
        state.done = True
        state.clear_timers()
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
