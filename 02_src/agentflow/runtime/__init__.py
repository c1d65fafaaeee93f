"""Agent runtime, registry and factory."""

from .agent import AgentRuntime, IAgent
from .factory import AgentFactory, AgentTemplate
from .registry import AgentRegistry, AgentRegistryStats

__all__ = [
    "AgentFactory",
    "AgentRegistry",
    "AgentRegistryStats",
    "AgentRuntime",
    "AgentTemplate",
    "IAgent",
]
