"""MessageBus: point-to-point and broadcast delivery between agents."""

import dataclasses
from collections import deque
from typing import Any

from ..errors import AgentNotFoundError
from ..event_bus import EventType, IEventBus
from ..logging_config import get_logger
from ..models import BROADCAST, AgentMessage, MessageType
from ..runtime import AgentRegistry

logger = get_logger(__name__)


class MessageBus:
    """
    Delivers AgentMessages to registered agents.

    Delivery means publishing message:received for each recipient; what an
    agent does with an inbound message is up to its subscribers.
    """

    def __init__(self, registry: AgentRegistry, event_bus: IEventBus, history_limit: int = 1000):
        self._registry = registry
        self._event_bus = event_bus
        self._history: deque[AgentMessage] = deque(maxlen=history_limit)
        self._messages_sent = 0

    @property
    def messages_sent(self) -> int:
        return self._messages_sent

    def history(self, agent_id: str | None = None, limit: int = 100) -> list[AgentMessage]:
        """Delivered messages, newest last, optionally involving one agent."""
        messages = [
            m
            for m in self._history
            if agent_id is None or agent_id in (m.from_agent, m.to) or m.is_broadcast
        ]
        return messages[-limit:]

    async def send_message(self, message: AgentMessage) -> list[str]:
        """
        Deliver a message.

        Returns:
            Recipient ids. Empty when the message had already expired.

        Raises:
            AgentNotFoundError: a direct recipient is not registered
        """
        if message.is_expired():
            logger.warning(
                "Dropping expired message %s from %s to %s",
                message.id,
                message.from_agent,
                message.to,
            )
            return []

        if message.is_broadcast:
            recipients = [a.id for a in self._registry.list() if a.id != message.from_agent]
        else:
            if self._registry.get(message.to) is None:
                raise AgentNotFoundError(
                    f"Recipient agent {message.to} not found", details={"agent_id": message.to}
                )
            recipients = [message.to]

        self._history.append(message)
        self._messages_sent += 1

        await self._event_bus.emit(
            EventType.MESSAGE_SENT,
            source=message.from_agent,
            message_id=message.id,
            from_agent=message.from_agent,
            to=message.to,
            type=message.type.value,
            recipients=recipients,
        )
        for recipient in recipients:
            await self._event_bus.emit(
                EventType.MESSAGE_RECEIVED,
                source=message.from_agent,
                message_id=message.id,
                agent_id=recipient,
                from_agent=message.from_agent,
                type=message.type.value,
                content=message.content,
                priority=message.metadata.priority.value,
                correlation_id=message.metadata.correlation_id,
            )

        logger.debug("Message %s delivered to %d agent(s)", message.id, len(recipients))
        return recipients

    async def broadcast_message(
        self,
        from_agent: str,
        content: Any,
        type: MessageType = MessageType.BROADCAST,
        **metadata: Any,
    ) -> AgentMessage:
        """Send content to every registered agent except the sender."""
        message = AgentMessage(from_agent=from_agent, to=BROADCAST, content=content, type=type)
        if metadata:
            message.metadata = dataclasses.replace(message.metadata, **metadata)
        await self.send_message(message)
        return message

    def clear(self) -> None:
        self._history.clear()
        self._messages_sent = 0
