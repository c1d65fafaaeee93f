"""Cooperative cancellation tokens with deadlines."""

import asyncio
import time
from typing import Any

from .errors import DeadlineExceededError, ExecutionCancelledError


class CancellationToken:
    """
    Deadline plus cancel flag, threaded through every async call.

    Tokens form a tree: a child is cancelled when any ancestor is, and its
    deadline never outlives its parent's. Nothing here interrupts running
    work; callers observe the token at their own checkpoints.
    """

    def __init__(self, timeout: float | None = None, parent: "CancellationToken | None" = None):
        self.timeout = timeout
        self._parent = parent
        self._event = asyncio.Event()
        self._reason: str | None = None

        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    @property
    def reason(self) -> str | None:
        if self._event.is_set():
            return self._reason
        return self._parent.reason if self._parent is not None else None

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, reason: str = "Cancelled") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def child(self, timeout: float | None = None) -> "CancellationToken":
        return CancellationToken(timeout=timeout, parent=self)

    def raise_if_cancelled(self) -> None:
        """Raise if cancelled or past the deadline. Cancellation wins."""
        if self.cancelled:
            raise ExecutionCancelledError(self.reason or "Cancelled")
        if self.expired:
            raise DeadlineExceededError(
                f"Deadline exceeded after {self._describe_timeout()}",
                details={"timeout": self.timeout},
            )

    async def guard(self, task: "asyncio.Future[Any]") -> Any:
        """
        Await task until it finishes, the deadline passes or the token is cancelled.

        The task is never cancelled; on timeout or cancellation it keeps
        running and the caller decides what to do with it.
        """
        waiters = [asyncio.ensure_future(event.wait()) for event in self._events()]
        try:
            await asyncio.wait(
                [task, *waiters],
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for waiter in waiters:
                waiter.cancel()

        if task.done():
            return task.result()

        self.raise_if_cancelled()
        raise DeadlineExceededError(
            f"Deadline exceeded after {self._describe_timeout()}",
            details={"timeout": self.timeout},
        )

    async def sleep(self, delay: float) -> None:
        """Sleep for delay seconds unless cancelled or the deadline comes first."""
        remaining = self.remaining()
        timeout = delay if remaining is None else min(delay, remaining)

        waiters = [asyncio.ensure_future(event.wait()) for event in self._events()]
        try:
            await asyncio.wait(waiters, timeout=timeout)
        finally:
            for waiter in waiters:
                waiter.cancel()

        self.raise_if_cancelled()
        if remaining is not None and remaining < delay:
            raise DeadlineExceededError(
                f"Deadline exceeded after {self._describe_timeout()}",
                details={"timeout": self.timeout},
            )

    def _events(self) -> list[asyncio.Event]:
        events = []
        token: CancellationToken | None = self
        while token is not None:
            events.append(token._event)
            token = token._parent
        return events

    def _describe_timeout(self) -> str:
        if self.timeout is not None:
            return f"{self.timeout}s"
        return "inherited deadline"
