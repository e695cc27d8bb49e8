from __future__ import annotations
import asyncio
import inspect
from typing import Awaitable, Optional, TypeVar

from tailor.core.errors import GenerationCancelled
from tailor.resilience.timeouts import settle

T = TypeVar("T")


class CancellationToken:
    """
    One-way signal owned by the caller (e.g. a "Cancel" button). The resilience
    layer only observes it: unset -> cancelled, never back.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def raise_if_cancelled(cancel: Optional[CancellationToken], attempts: int = 0) -> None:
    if cancel is not None and cancel.cancelled:
        raise GenerationCancelled(attempts=attempts)


async def race_cancel(operation: Awaitable[T], cancel: Optional[CancellationToken],
                      attempts: int = 0) -> T:
    """
    Await `operation`, giving up as soon as `cancel` is set. The losing side is
    cancelled and awaited so no task outlives the call.
    """
    if cancel is None:
        return await operation
    if cancel.cancelled:
        if inspect.iscoroutine(operation):
            operation.close()
        raise GenerationCancelled(attempts=attempts)

    op_task = asyncio.ensure_future(operation)
    cancel_task = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({op_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await settle(op_task)
        await settle(cancel_task)
        raise

    if op_task.done():
        await settle(cancel_task)
        return op_task.result()

    await settle(op_task)
    raise GenerationCancelled(attempts=attempts)


async def cancellable_sleep(delay: float, cancel: Optional[CancellationToken],
                            attempts: int = 0) -> None:
    """Sleep for `delay` seconds; raise GenerationCancelled the moment `cancel` is set."""
    if cancel is None:
        await asyncio.sleep(delay)
        return
    raise_if_cancelled(cancel, attempts)
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise GenerationCancelled(attempts=attempts)
