"""EventBus implementation for lifecycle notifications."""

import asyncio
import functools
import inspect
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


class EventType(str, Enum):
    """Lifecycle notifications produced by the runtime and scheduler."""

    WORKFLOW_START = "workflow:start"
    WORKFLOW_COMPLETE = "workflow:complete"
    WORKFLOW_ERROR = "workflow:error"
    WORKFLOW_CANCEL = "workflow:cancel"

    STEP_START = "step:start"
    STEP_COMPLETE = "step:complete"
    STEP_ERROR = "step:error"
    STEP_RETRY = "step:retry"
    STEP_SKIP = "step:skip"

    EXECUTION_START = "execution:start"
    EXECUTION_STEP = "execution:step"
    EXECUTION_COMPLETE = "execution:complete"
    EXECUTION_ERROR = "execution:error"
    EXECUTION_PAUSE = "execution:pause"
    EXECUTION_RESUME = "execution:resume"

    TOOL_CALL = "tool:call"
    TOOL_RESULT = "tool:result"
    TOOL_ERROR = "tool:error"

    MESSAGE_SENT = "message:sent"
    MESSAGE_RECEIVED = "message:received"

    AGENT_REGISTER = "agent:register"
    AGENT_UNREGISTER = "agent:unregister"

    CONFIG_UPDATE = "config:update"


@dataclass
class BusEvent:
    """A single notification published on the EventBus."""

    type: EventType
    payload: dict[str, Any]
    source: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[BusEvent], Awaitable[None] | None]


class IEventBus(Protocol):
    """In-process observer interface for lifecycle events."""

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a handler to one event type."""
        ...

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe a handler to every event type."""
        ...

    def unsubscribe(self, handler: EventHandler, event_type: EventType | None = None) -> None:
        """Remove a handler from one event type, or from everywhere."""
        ...

    async def publish(self, event: BusEvent) -> None:
        """Deliver an event to its subscribers without waiting on slow handlers."""
        ...

    async def emit(self, event_type: EventType, source: str, **payload: Any) -> None:
        """Build a BusEvent and publish it."""
        ...

    async def drain(self) -> None:
        """Wait for handlers still running in the background."""
        ...


class EventBus:
    """In-memory pub/sub event bus."""

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[EventHandler]] = {
            event_type: [] for event_type in EventType
        }
        self._wildcard: list[EventHandler] = []
        self._pending: set[asyncio.Future] = set()

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a handler to one event type."""
        self._subscribers[event_type].append(handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe a handler to every event type."""
        self._wildcard.append(handler)

    def unsubscribe(self, handler: EventHandler, event_type: EventType | None = None) -> None:
        """Remove a handler from one event type, or from everywhere."""
        if event_type is not None:
            if handler in self._subscribers[event_type]:
                self._subscribers[event_type].remove(handler)
            return

        for handlers in self._subscribers.values():
            if handler in handlers:
                handlers.remove(handler)
        if handler in self._wildcard:
            self._wildcard.remove(handler)

    def handler_count(self, event_type: EventType | None = None) -> int:
        if event_type is None:
            return len(self._wildcard) + sum(len(h) for h in self._subscribers.values())
        return len(self._subscribers[event_type]) + len(self._wildcard)

    async def publish(self, event: BusEvent) -> None:
        """
        Deliver an event to its subscribers without waiting for them.

        Plain functions are called inline. Coroutine handlers are scheduled
        as background tasks; use drain() to wait for them. Handler errors are
        logged, not raised.
        """
        handlers = [*self._subscribers.get(event.type, []), *self._wildcard]

        for handler in handlers:
            try:
                result = handler(event)
            except Exception as e:
                self._log_failure(handler, event, e)
                continue

            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(functools.partial(self._on_handler_done, handler, event))

    def _on_handler_done(
        self, handler: EventHandler, event: BusEvent, task: asyncio.Future
    ) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._log_failure(handler, event, error)

    def _log_failure(self, handler: EventHandler, event: BusEvent, error: BaseException) -> None:
        logger.error(
            "Error in handler %s for %s: %s",
            getattr(handler, "__qualname__", repr(handler)),
            event.type.value,
            error,
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every handler task scheduled so far has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def emit(self, event_type: EventType, source: str, **payload: Any) -> None:
        """Build a BusEvent and publish it."""
        await self.publish(BusEvent(type=event_type, payload=payload, source=source))
