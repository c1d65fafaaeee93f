"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from agentflow.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def event_bus():
    """Create an empty EventBus."""
    from agentflow.event_bus import EventBus

    return EventBus()


@pytest.fixture
def events(event_bus):
    """Every BusEvent published on event_bus, in order."""
    received = []

    def record(event):
        received.append(event)

    event_bus.subscribe_all(record)
    return received


@pytest.fixture
def tracker(storage, event_bus):
    """Create Tracker with storage and event bus."""
    from agentflow.tracker import Tracker

    return Tracker(event_bus=event_bus, storage=storage)


@pytest.fixture
def make_provider():
    """
    Factory for mock model providers.

    By default the provider answers with the last user message. error makes
    the first `failures` calls raise it (every call when failures is None).
    """
    from agentflow.llm import ChatResponse

    def _make(reply=None, delay: float = 0.0, error: Exception | None = None, failures=None):
        calls = {"count": 0}

        async def chat(messages, params, tools=None):
            calls["count"] += 1
            if delay:
                await asyncio.sleep(delay)
            if error is not None and (failures is None or calls["count"] <= failures):
                raise error
            if isinstance(reply, ChatResponse):
                return reply
            return ChatResponse(text=reply if reply is not None else messages[-1]["content"])

        provider = Mock()
        provider.chat = AsyncMock(side_effect=chat)
        return provider

    return _make


@pytest.fixture
def make_agent(event_bus, make_provider):
    """Factory for AgentRuntime instances wired to event_bus."""
    from agentflow.models import AgentConfig, ProviderSettings
    from agentflow.runtime import AgentRuntime

    def _make(agent_id: str = "agent-1", provider=None, tools=None, **config):
        fields = {
            "name": agent_id,
            "role": "tester",
            "system_prompt": "You are a test agent.",
            "provider": ProviderSettings(name="mock", model="test-model"),
        }
        fields.update(config)
        return AgentRuntime(
            AgentConfig(id=agent_id, **fields),
            provider or make_provider(),
            event_bus=event_bus,
            tools=tools,
        )

    return _make


@pytest.fixture
def registry(event_bus):
    """Create AgentRegistry on event_bus."""
    from agentflow.runtime import AgentRegistry

    return AgentRegistry(event_bus)


@pytest.fixture
def scheduler(registry, event_bus):
    """WorkflowScheduler with short deadlines and fast retries."""
    from agentflow.models import RetryPolicy
    from agentflow.workflow import WorkflowScheduler

    return WorkflowScheduler(
        registry,
        event_bus,
        step_timeout=2.0,
        max_concurrency=5,
        retry_policy=RetryPolicy(max_attempts=3, delay=0.01),
    )


@pytest.fixture
def context():
    """A running agent execution context for calling tools directly."""
    from agentflow.models import AgentExecutionContext, ExecutionState

    ctx = AgentExecutionContext(agent_id="tool-tester")
    ctx.transition(ExecutionState.RUNNING)
    return ctx
