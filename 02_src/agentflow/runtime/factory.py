"""AgentFactory: validated construction of AgentRuntime instances."""

import dataclasses
import uuid
from dataclasses import dataclass
from typing import Any

from ..config import DEFAULT_MODEL
from ..event_bus import IEventBus
from ..llm import ProviderFactory
from ..logging_config import get_logger
from ..models import AgentCapabilities, AgentConfig, ProviderSettings
from ..tools import ToolRegistry
from .agent import AgentRuntime

logger = get_logger(__name__)


@dataclass(frozen=True)
class AgentTemplate:
    """Reusable agent blueprint. config carries AgentConfig fields minus id."""

    id: str
    name: str
    description: str
    config: dict[str, Any]
    required_tools: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    version: str = "1.0.0"


def _default_templates() -> list[AgentTemplate]:
    return [
        AgentTemplate(
            id="assistant",
            name="General Assistant",
            description="A helpful general-purpose AI assistant",
            config={
                "name": "Assistant",
                "description": "A helpful AI assistant that can answer questions and help with tasks",
                "role": "helpful assistant",
                "system_prompt": (
                    "You are a helpful AI assistant. "
                    "Provide accurate, helpful, and concise responses."
                ),
                "capabilities": AgentCapabilities(
                    can_use_tool=True,
                    can_communicate=True,
                    can_make_decisions=True,
                    max_execution_time=30.0,
                ),
                "tools": (),
                "provider": ProviderSettings(name="anthropic", model=DEFAULT_MODEL, temperature=0.7),
            },
            tags=("general", "assistant"),
        ),
        AgentTemplate(
            id="researcher",
            name="Research Agent",
            description="An agent specialized in research and information gathering",
            config={
                "name": "Researcher",
                "description": "An AI agent that specializes in research and information gathering",
                "role": "research specialist",
                "system_prompt": (
                    "You are a research specialist. Gather information thoroughly, "
                    "cite sources, and provide comprehensive analysis."
                ),
                "capabilities": AgentCapabilities(
                    can_use_tool=True,
                    can_communicate=True,
                    can_make_decisions=True,
                    max_execution_time=60.0,
                ),
                "tools": ("http_request", "text_processor"),
                "provider": ProviderSettings(name="anthropic", model=DEFAULT_MODEL, temperature=0.3),
            },
            required_tools=("http_request",),
            tags=("research", "information"),
        ),
    ]


class AgentFactory:
    """Builds agents from configs or templates, resolving providers and tools."""

    def __init__(
        self,
        provider_factory: ProviderFactory,
        tool_registry: ToolRegistry,
        event_bus: IEventBus | None = None,
    ):
        self._providers = provider_factory
        self._tools = tool_registry
        self._event_bus = event_bus
        self._templates: dict[str, AgentTemplate] = {t.id: t for t in _default_templates()}

    @property
    def templates(self) -> list[AgentTemplate]:
        return list(self._templates.values())

    def add_template(self, template: AgentTemplate) -> None:
        self._templates[template.id] = template

    def validate_config(self, config: AgentConfig) -> list[str]:
        """Return a list of problems; empty means valid."""
        errors: list[str] = []

        if not config.id:
            errors.append("Agent ID is required")
        if not config.name:
            errors.append("Agent name is required")
        if not config.role:
            errors.append("Agent role is required")
        if not config.system_prompt:
            errors.append("System prompt is required")
        if not config.provider.name:
            errors.append("Provider name is required")
        elif config.provider.name not in self._providers.names:
            errors.append(f"Unknown provider: {config.provider.name}")
        if not config.provider.model:
            errors.append("Provider model is required")

        caps = config.capabilities
        if caps.max_execution_time is not None and caps.max_execution_time <= 0:
            errors.append("Max execution time must be positive")
        if caps.max_concurrent_tools is not None and caps.max_concurrent_tools <= 0:
            errors.append("Max concurrent tools must be positive")

        for tool_id in config.tools:
            if self._tools.get(tool_id) is None:
                errors.append(f"Unknown tool: {tool_id}")

        return errors

    def create(self, config: AgentConfig) -> AgentRuntime:
        errors = self.validate_config(config)
        if errors:
            raise ValueError(f"Invalid agent configuration: {', '.join(errors)}")

        provider = self._providers.get(config.provider.name)
        tools = [self._tools.get(tool_id) for tool_id in config.tools]
        agent = AgentRuntime(config, provider, event_bus=self._event_bus, tools=tools)
        logger.info("Agent created: %s (%s)", config.id, config.role)
        return agent

    def create_from_template(self, template_id: str, **overrides: Any) -> AgentRuntime:
        """Create an agent from a template; overrides win over template fields."""
        template = self._templates.get(template_id)
        if template is None:
            raise ValueError(f"Template {template_id} not found")

        missing = [t for t in template.required_tools if self._tools.get(t) is None]
        if missing:
            raise ValueError(
                f"Template {template_id} requires unavailable tools: {', '.join(missing)}"
            )

        fields = {**template.config, **overrides}
        fields.setdefault("id", f"agent-{uuid.uuid4()}")
        fields["tools"] = tuple(fields.get("tools", ()))
        known = {f.name for f in dataclasses.fields(AgentConfig)}
        unknown = set(fields) - known
        if unknown:
            raise ValueError(f"Unknown agent config fields: {', '.join(sorted(unknown))}")

        return self.create(AgentConfig(**fields))
