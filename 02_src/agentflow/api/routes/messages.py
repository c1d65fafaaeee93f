"""Inter-agent messaging API routes."""

from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Query
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ...app import Application
from ...models import BROADCAST, AgentMessage, MessageMetadata, MessageType, Priority
from ..errors import to_http_exception


class SendMessageRequest(BaseModel):
    """Request model for sending a message."""

    from_agent: str
    to: str
    content: Any
    type: MessageType = MessageType.REQUEST
    priority: Priority = Priority.NORMAL
    expects_response: bool = False
    correlation_id: str | None = None
    ttl: float | None = Field(None, gt=0, description="Seconds until the message expires")


class BroadcastRequest(BaseModel):
    from_agent: str
    content: Any
    priority: Priority = Priority.NORMAL


class DeliveryResponse(BaseModel):
    message_id: str
    recipients: list[str]


class MessageResponse(BaseModel):
    id: str
    from_agent: str
    to: str
    type: str
    content: Any
    priority: str
    timestamp: datetime


def create_messages_router(app: Application) -> APIRouter:
    """Create messaging router."""
    router = APIRouter(prefix="/api", tags=["messaging"])

    @router.post("/messages", response_model=DeliveryResponse)
    async def send_message(request: SendMessageRequest) -> dict:
        """Send a message to one agent (or to "broadcast")."""
        try:
            now = datetime.now(timezone.utc)
            message = AgentMessage(
                from_agent=request.from_agent,
                to=request.to,
                content=request.content,
                type=request.type,
                metadata=MessageMetadata(
                    timestamp=now,
                    priority=request.priority,
                    expects_response=request.expects_response,
                    correlation_id=request.correlation_id,
                    expires_at=now + timedelta(seconds=request.ttl) if request.ttl else None,
                ),
            )
            recipients = await app.message_bus.send_message(message)
            return {"message_id": message.id, "recipients": recipients}
        except Exception as e:
            raise to_http_exception(e) from e

    @router.post("/messages/broadcast", response_model=DeliveryResponse)
    async def broadcast_message(request: BroadcastRequest) -> dict:
        """Send a message to every agent except the sender."""
        try:
            message = AgentMessage(
                from_agent=request.from_agent,
                to=BROADCAST,
                content=request.content,
                type=MessageType.BROADCAST,
                metadata=MessageMetadata(priority=request.priority),
            )
            recipients = await app.message_bus.send_message(message)
            return {"message_id": message.id, "recipients": recipients}
        except Exception as e:
            raise to_http_exception(e) from e

    @router.get("/messages", response_model=list[MessageResponse])
    async def get_messages(
        agent_id: str | None = Query(None, description="Only messages involving this agent"),
        limit: int = Query(100, ge=1, le=1000),
    ) -> list[dict]:
        """Delivered messages, newest last."""
        return [
            {
                "id": m.id,
                "from_agent": m.from_agent,
                "to": m.to,
                "type": m.type.value,
                "content": jsonable_encoder(m.content),
                "priority": m.metadata.priority.value,
                "timestamp": m.metadata.timestamp,
            }
            for m in app.message_bus.history(agent_id=agent_id, limit=limit)
        ]

    return router
