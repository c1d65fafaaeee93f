"""Agent registry: lookup table of live agents by id."""

from dataclasses import dataclass
from typing import Any

from ..errors import AgentAlreadyRegisteredError, AgentNotFoundError
from ..event_bus import EventType, IEventBus
from ..logging_config import get_logger
from ..models import AgentConfig, AgentStatus, ExecutionState
from .agent import IAgent

logger = get_logger(__name__)


@dataclass
class AgentRegistryStats:
    total_agents: int
    active_agents: int
    running_agents: int
    total_executions: int
    average_execution_time: float


class AgentRegistry:
    """Holds agent instances. Built explicitly and passed to its users."""

    def __init__(self, event_bus: IEventBus | None = None):
        self._event_bus = event_bus
        self._agents: dict[str, IAgent] = {}

    async def register(self, agent: IAgent) -> IAgent:
        """Register an agent. A taken id raises and leaves the existing entry alone."""
        if agent.id in self._agents:
            raise AgentAlreadyRegisteredError(
                f"Agent with ID {agent.id} already exists", details={"agent_id": agent.id}
            )

        self._agents[agent.id] = agent
        logger.info("Agent registered: %s", agent.id)
        await self._emit(EventType.AGENT_REGISTER, agent_id=agent.id, name=agent.config.name)
        return agent

    async def unregister(self, agent_id: str) -> bool:
        """Stop and remove an agent. Returns False if it was not registered."""
        agent = self._agents.get(agent_id)
        if agent is None:
            return False

        await agent.stop()
        del self._agents[agent_id]
        logger.info("Agent unregistered: %s", agent_id)
        await self._emit(EventType.AGENT_UNREGISTER, agent_id=agent_id)
        return True

    def get(self, agent_id: str) -> IAgent | None:
        return self._agents.get(agent_id)

    def __contains__(self, agent_id: str) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def find(self, **criteria: Any) -> list[IAgent]:
        """Agents whose config fields equal every given criterion."""
        if "tools" in criteria:
            criteria["tools"] = tuple(criteria["tools"])

        return [
            agent
            for agent in self._agents.values()
            if all(getattr(agent.config, key, None) == value for key, value in criteria.items())
        ]

    async def update(self, agent_id: str, **changes: Any) -> AgentConfig:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(f"Agent with ID {agent_id} not found")
        return await agent.update_config(**changes)

    def get_status(self, agent_id: str) -> AgentStatus | None:
        agent = self._agents.get(agent_id)
        return agent.get_status() if agent else None

    def get_stats(self) -> AgentRegistryStats:
        agents = list(self._agents.values())
        statuses = [agent.get_status() for agent in agents]

        return AgentRegistryStats(
            total_agents=len(agents),
            active_agents=sum(1 for agent in agents if agent.config.active),
            running_agents=sum(1 for s in statuses if s.state == ExecutionState.RUNNING),
            total_executions=sum(s.metrics.total_executions for s in statuses),
            average_execution_time=(
                sum(s.metrics.average_execution_time for s in statuses) / len(statuses)
                if statuses
                else 0.0
            ),
        )

    async def clear(self) -> None:
        """Unregister every agent."""
        for agent_id in list(self._agents):
            await self.unregister(agent_id)

    async def _emit(self, event_type: EventType, **payload: Any) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(event_type, source="agent_registry", **payload)

    # Defined last: the method name shadows the builtin inside the class body
    def list(self) -> list[IAgent]:
        return list(self._agents.values())
