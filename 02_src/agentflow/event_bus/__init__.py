"""EventBus module."""

from .event_bus import BusEvent, EventBus, EventHandler, EventType, IEventBus

__all__ = ["BusEvent", "EventBus", "EventHandler", "EventType", "IEventBus"]
