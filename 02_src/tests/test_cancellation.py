"""Tests for CancellationToken."""

import asyncio
import time

import pytest

from agentflow.cancellation import CancellationToken
from agentflow.errors import DeadlineExceededError, ExecutionCancelledError


class TestTokenState:
    """Tests for cancel flags and deadlines."""

    def test_fresh_token(self):
        token = CancellationToken()

        assert token.cancelled is False
        assert token.expired is False
        assert token.remaining() is None
        token.raise_if_cancelled()

    def test_cancel_propagates_to_children(self):
        """Test that cancelling a parent cancels its children."""
        parent = CancellationToken()
        child = parent.child(10)

        parent.cancel("shutdown")

        assert child.cancelled is True
        assert child.reason == "shutdown"
        with pytest.raises(ExecutionCancelledError):
            child.raise_if_cancelled()

    def test_child_cancel_does_not_reach_parent(self):
        parent = CancellationToken()
        child = parent.child()

        child.cancel()

        assert parent.cancelled is False

    def test_child_deadline_capped_by_parent(self):
        """Test that a child never outlives its parent's deadline."""
        parent = CancellationToken(timeout=1.0)
        child = parent.child(60)

        assert child.deadline == parent.deadline
        assert child.remaining() <= 1.0

    def test_expired_token_raises_deadline(self):
        token = CancellationToken(timeout=0.001)
        time.sleep(0.01)

        assert token.expired is True
        with pytest.raises(DeadlineExceededError):
            token.raise_if_cancelled()


class TestTokenGuard:
    """Tests for guard() and sleep()."""

    @pytest.mark.asyncio
    async def test_guard_returns_result(self):
        token = CancellationToken(timeout=1.0)

        async def work():
            return 42

        assert await token.guard(asyncio.ensure_future(work())) == 42

    @pytest.mark.asyncio
    async def test_guard_times_out_without_cancelling_task(self):
        """Test that the deadline fires but the task keeps running."""
        token = CancellationToken(timeout=0.05)
        task = asyncio.ensure_future(asyncio.sleep(0.2, result="late"))

        with pytest.raises(DeadlineExceededError):
            await token.guard(task)

        assert not task.cancelled()
        assert await task == "late"

    @pytest.mark.asyncio
    async def test_guard_wakes_on_cancel(self):
        """Test that cancelling a parent interrupts a child's guard."""
        parent = CancellationToken()
        child = parent.child()
        task = asyncio.ensure_future(asyncio.sleep(1))

        asyncio.get_running_loop().call_later(0.02, parent.cancel, "stop")
        with pytest.raises(ExecutionCancelledError):
            await child.guard(task)

        task.cancel()

    @pytest.mark.asyncio
    async def test_sleep_interrupted_by_cancel(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.02, token.cancel)

        started = time.monotonic()
        with pytest.raises(ExecutionCancelledError):
            await token.sleep(1.0)
        assert time.monotonic() - started < 0.5

    @pytest.mark.asyncio
    async def test_sleep_past_deadline(self):
        token = CancellationToken(timeout=0.02)

        with pytest.raises(DeadlineExceededError):
            await token.sleep(1.0)

    @pytest.mark.asyncio
    async def test_sleep_completes(self):
        token = CancellationToken(timeout=1.0)

        await token.sleep(0.01)
