"""Tracing and observability data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class TraceEvent:
    """A single persisted observability event."""

    id: str
    event_type: str  # e.g. "workflow:start", "tool:call"
    actor: str  # component that emitted the event
    data: dict  # self-contained, JSON-serializable payload
    timestamp: datetime
