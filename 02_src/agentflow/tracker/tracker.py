"""Tracker implementation for creating TraceEvents."""

import uuid
from datetime import datetime, timezone
from typing import Protocol

from ..event_bus import BusEvent, IEventBus
from ..logging_config import get_logger
from ..models import TraceEvent
from ..storage import IStorage

logger = get_logger(__name__)


class ITracker(Protocol):
    """Creating TraceEvents. Two channels: EventBus subscription + direct calls."""

    async def track(
        self, event_type: str, actor: str, data: dict, timestamp: datetime | None = None
    ) -> None:
        """Create TraceEvent and save to Storage. timestamp defaults to now."""
        ...

    async def stop(self) -> None:
        """Stop tracker."""
        ...


class Tracker:
    """Creates TraceEvents via EventBus subscription and direct track() calls."""

    def __init__(self, event_bus: IEventBus, storage: IStorage):
        self._event_bus = event_bus
        self._storage = storage
        self._started = False

    async def start(self) -> None:
        """Subscribe to every EventBus event type."""
        if self._started:
            return
        self._event_bus.subscribe_all(self._handle_bus_event)
        self._started = True

    async def _handle_bus_event(self, event: BusEvent) -> None:
        """Handle incoming BusEvent from EventBus."""
        await self.track(
            event_type=event.type.value,
            actor=event.source,
            data={"event_id": event.id, **event.payload},
            timestamp=event.timestamp,
        )

    async def track(
        self, event_type: str, actor: str, data: dict, timestamp: datetime | None = None
    ) -> None:
        """Create TraceEvent and save to Storage."""
        trace_event = TraceEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            actor=actor,
            data=data,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        await self._storage.save_trace_event(trace_event)

    async def stop(self) -> None:
        """Unsubscribe from the EventBus."""
        if self._started:
            self._event_bus.unsubscribe(self._handle_bus_event)
            self._started = False
