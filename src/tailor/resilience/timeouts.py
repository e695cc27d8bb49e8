from __future__ import annotations
import asyncio
from typing import Awaitable, TypeVar

from tailor.core.errors import OperationTimeoutError

T = TypeVar("T")


async def settle(task: "asyncio.Future") -> None:
    """Cancel the losing side of a race and wait for it to finish."""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        # loser of the race; its outcome no longer matters
        pass


async def with_timeout(operation: Awaitable[T], timeout: float, label: str = "operation") -> T:
    """
    Race `operation` against a deadline. Raises OperationTimeoutError (carrying
    `timeout` and `label`) if it has not settled in time; otherwise returns or
    re-raises whatever the operation produced. A TimeoutError raised by the
    operation itself passes through unchanged.
    """
    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        await settle(task)
        raise

    if task in done:
        return task.result()

    await settle(task)
    raise OperationTimeoutError(
        f"Operation timeout: {label} did not complete within {timeout:g}s",
        timeout=timeout,
        label=label,
    )
