"""Tests for MessageBus."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from agentflow.errors import AgentNotFoundError
from agentflow.event_bus import EventType
from agentflow.messaging import MessageBus
from agentflow.models import AgentMessage, MessageMetadata, MessageType, Priority


@pytest.fixture
def message_bus(registry, event_bus):
    return MessageBus(registry, event_bus)


@pytest_asyncio.fixture
async def agents(registry, make_agent):
    for agent_id in ("alice", "bob", "carol"):
        await registry.register(make_agent(agent_id))
    return registry


class TestDirectMessages:
    """Tests for point-to-point delivery."""

    @pytest.mark.asyncio
    async def test_direct_delivery(self, message_bus, agents, events):
        """Test that a direct message reaches only its recipient."""
        message = AgentMessage(from_agent="alice", to="bob", content={"task": "review"})

        recipients = await message_bus.send_message(message)

        assert recipients == ["bob"]
        received = [e for e in events if e.type == EventType.MESSAGE_RECEIVED]
        assert len(received) == 1
        assert received[0].payload["agent_id"] == "bob"
        assert received[0].payload["content"] == {"task": "review"}
        assert received[0].source == "alice"
        assert message_bus.messages_sent == 1

    @pytest.mark.asyncio
    async def test_unknown_recipient(self, message_bus, agents):
        """Test that an unregistered recipient raises and nothing is recorded."""
        message = AgentMessage(from_agent="alice", to="dave", content="hi")

        with pytest.raises(AgentNotFoundError):
            await message_bus.send_message(message)

        assert message_bus.history() == []

    @pytest.mark.asyncio
    async def test_expired_message_is_dropped(self, message_bus, agents, events):
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        message = AgentMessage(
            from_agent="alice",
            to="bob",
            content="late",
            metadata=MessageMetadata(expires_at=past),
        )

        assert await message_bus.send_message(message) == []
        assert not [e for e in events if e.type.value.startswith("message:")]
        assert message_bus.messages_sent == 0


class TestBroadcast:
    """Tests for broadcast delivery."""

    @pytest.mark.asyncio
    async def test_broadcast_skips_sender(self, message_bus, agents, events):
        """Test that a broadcast reaches every agent except the sender."""
        message = await message_bus.broadcast_message(
            "alice", "standup", priority=Priority.HIGH
        )

        received = [e for e in events if e.type == EventType.MESSAGE_RECEIVED]
        assert message.type == MessageType.BROADCAST
        assert message.metadata.priority == Priority.HIGH
        assert sorted(e.payload["agent_id"] for e in received) == ["bob", "carol"]
        assert all(e.payload["priority"] == "high" for e in received)

    @pytest.mark.asyncio
    async def test_broadcast_with_no_other_agents(self, message_bus, registry, make_agent):
        await registry.register(make_agent("alone"))

        message = AgentMessage(from_agent="alone", to="broadcast", content="anyone?")

        assert await message_bus.send_message(message) == []


class TestHistory:
    """Tests for message history."""

    @pytest.mark.asyncio
    async def test_history_filters_by_agent(self, message_bus, agents):
        await message_bus.send_message(AgentMessage(from_agent="alice", to="bob", content=1))
        await message_bus.send_message(AgentMessage(from_agent="bob", to="carol", content=2))
        await message_bus.broadcast_message("carol", 3)

        assert [m.content for m in message_bus.history()] == [1, 2, 3]
        assert [m.content for m in message_bus.history(agent_id="alice")] == [1, 3]
        assert [m.content for m in message_bus.history(limit=1)] == [3]

    @pytest.mark.asyncio
    async def test_history_limit_and_clear(self, registry, event_bus, make_agent):
        """Test that history keeps only the newest messages."""
        await registry.register(make_agent("a"))
        await registry.register(make_agent("b"))
        bus = MessageBus(registry, event_bus, history_limit=2)

        for i in range(3):
            await bus.send_message(AgentMessage(from_agent="a", to="b", content=i))

        assert [m.content for m in bus.history()] == [1, 2]

        bus.clear()
        assert bus.history() == []
        assert bus.messages_sent == 0
