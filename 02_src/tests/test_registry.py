"""Tests for AgentRegistry."""

import pytest

from agentflow.errors import AgentAlreadyRegisteredError, AgentNotFoundError
from agentflow.event_bus import EventType


class TestRegistryRegistration:
    """Tests for register/unregister."""

    @pytest.mark.asyncio
    async def test_register_and_get(self, registry, make_agent, events):
        """Test registering an agent makes it retrievable."""
        agent = make_agent("a")

        await registry.register(agent)

        assert registry.get("a") is agent
        assert "a" in registry
        assert len(registry) == 1
        assert registry.list() == [agent]
        register_event = [e for e in events if e.type == EventType.AGENT_REGISTER][0]
        assert register_event.payload["agent_id"] == "a"
        assert register_event.source == "agent_registry"

    @pytest.mark.asyncio
    async def test_duplicate_registration_keeps_original(self, registry, make_agent):
        """Test that a taken id raises and leaves the original in place."""
        original = make_agent("a")
        await registry.register(original)

        with pytest.raises(AgentAlreadyRegisteredError):
            await registry.register(make_agent("a", role="impostor"))

        assert registry.get("a") is original
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_unregister(self, registry, make_agent, events):
        """Test unregistering removes the agent and emits agent:unregister."""
        await registry.register(make_agent("a"))

        assert await registry.unregister("a") is True
        assert await registry.unregister("a") is False
        assert registry.get("a") is None
        assert any(e.type == EventType.AGENT_UNREGISTER for e in events)

    @pytest.mark.asyncio
    async def test_clear(self, registry, make_agent):
        await registry.register(make_agent("a"))
        await registry.register(make_agent("b"))

        await registry.clear()

        assert len(registry) == 0


class TestRegistryQueries:
    """Tests for find/update/status/stats."""

    @pytest.mark.asyncio
    async def test_find_by_config_fields(self, registry, make_agent):
        """Test find() matches every criterion."""
        await registry.register(make_agent("a", role="writer", tools=None))
        await registry.register(make_agent("b", role="reviewer"))
        await registry.register(make_agent("c", role="writer", active=False))

        assert [a.id for a in registry.find(role="writer")] == ["a", "c"]
        assert [a.id for a in registry.find(role="writer", active=True)] == ["a"]
        assert [a.id for a in registry.find(tools=[])] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_update(self, registry, make_agent):
        """Test update() changes the agent's config."""
        await registry.register(make_agent("a"))

        config = await registry.update("a", description="updated")

        assert config.description == "updated"
        assert registry.get("a").config.description == "updated"

    @pytest.mark.asyncio
    async def test_update_unknown_agent(self, registry):
        with pytest.raises(AgentNotFoundError):
            await registry.update("ghost", description="x")

    @pytest.mark.asyncio
    async def test_status_and_stats(self, registry, make_agent):
        """Test status lookup and aggregated stats."""
        agent = make_agent("a")
        await registry.register(agent)
        await registry.register(make_agent("b", active=False))
        await agent.execute("hi")

        assert registry.get_status("a").metrics.total_executions == 1
        assert registry.get_status("ghost") is None

        stats = registry.get_stats()
        assert stats.total_agents == 2
        assert stats.active_agents == 1
        assert stats.running_agents == 0
        assert stats.total_executions == 1
