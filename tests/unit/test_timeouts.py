# tests/unit/test_timeouts.py

from __future__ import annotations
import asyncio
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from tailor.core.errors import OperationTimeoutError
from tailor.resilience.timeouts import with_timeout


@pytest.mark.asyncio
async def test_returns_result_before_deadline():
    async def fast():
        await asyncio.sleep(0.01)
        return "ok"

    assert await with_timeout(fast(), 1.0, "fast") == "ok"


@pytest.mark.asyncio
async def test_deadline_raises_distinguishable_timeout_and_cancels_loser():
    state = {"cancelled": False}

    async def slow():
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    with pytest.raises(OperationTimeoutError) as ei:
        await with_timeout(slow(), 0.05, "connection")

    assert ei.value.timeout == 0.05
    assert ei.value.label == "connection"
    assert "connection" in str(ei.value)
    assert state["cancelled"] is True


@pytest.mark.asyncio
async def test_operation_errors_propagate_unchanged():
    async def bad():
        raise ValueError("nope")

    with pytest.raises(ValueError):
        await with_timeout(bad(), 1.0)


@pytest.mark.asyncio
async def test_operation_own_timeout_is_not_relabelled():
    async def own_timeout():
        raise TimeoutError("socket read timed out")

    with pytest.raises(TimeoutError) as ei:
        await with_timeout(own_timeout(), 1.0)
    assert not isinstance(ei.value, OperationTimeoutError)


@pytest.mark.asyncio
async def test_outer_cancellation_waits_for_operation_cleanup():
    state = {"cleaned_up": False}

    async def slow():
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            await asyncio.sleep(0.01)
            state["cleaned_up"] = True
            raise

    outer = asyncio.ensure_future(with_timeout(slow(), 5.0, "connection"))
    await asyncio.sleep(0.02)
    outer.cancel()

    with pytest.raises(asyncio.CancelledError):
        await outer
    assert state["cleaned_up"] is True
