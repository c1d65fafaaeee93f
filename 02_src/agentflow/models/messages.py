"""Inter-agent message models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

BROADCAST = "broadcast"


class MessageType(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    NOTIFICATION = "notification"
    BROADCAST = "broadcast"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass
class MessageMetadata:
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    priority: Priority = Priority.NORMAL
    expects_response: bool = False
    correlation_id: str | None = None
    expires_at: datetime | None = None


@dataclass
class AgentMessage:
    """A message from one agent to another (or to all)."""

    from_agent: str
    to: str
    content: Any
    type: MessageType = MessageType.REQUEST
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    metadata: MessageMetadata = field(default_factory=MessageMetadata)

    @property
    def is_broadcast(self) -> bool:
        return self.to == BROADCAST

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.metadata.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.metadata.expires_at
