"""Application bootstrap and lifecycle management."""

from datetime import datetime, timedelta, timezone
from typing import Protocol

from .config import Settings
from .event_bus import EventBus
from .llm import ProviderFactory
from .logging_config import get_logger
from .messaging import MessageBus
from .models import RetryPolicy
from .runtime import AgentFactory, AgentRegistry
from .storage import IStorage, Storage
from .tools import ToolRegistry, builtin_tools
from .tracker import ITracker, Tracker
from .workflow import WorkflowScheduler

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: Settings | None = None,
        provider_factory: ProviderFactory | None = None,
        storage: IStorage | None = None,
    ):
        self._settings = settings or Settings()
        self._provider_factory_override = provider_factory
        self._storage_override = storage

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._event_bus: EventBus | None = None
        self._tracker: ITracker | None = None
        self._tools: ToolRegistry | None = None
        self._providers: ProviderFactory | None = None
        self._registry: AgentRegistry | None = None
        self._agent_factory: AgentFactory | None = None
        self._message_bus: MessageBus | None = None
        self._scheduler: WorkflowScheduler | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = self._storage_override or Storage(self._settings.database_url)
        await self._storage.init()
        if self._settings.trace_retention_days:
            cutoff = datetime.now(timezone.utc) - timedelta(days=self._settings.trace_retention_days)
            await self._storage.delete_trace_events_before(cutoff)
        logger.info("Storage initialized")

        # 2. EventBus (no dependencies)
        self._event_bus = EventBus()
        logger.info("EventBus initialized")

        # 3. Tracker (depends on EventBus + Storage)
        self._tracker = Tracker(self._event_bus, self._storage)
        await self._tracker.start()

        # 4. Tools
        self._tools = ToolRegistry()
        for tool in builtin_tools():
            self._tools.register(tool)
        logger.info("Tool registry initialized with %d tools", len(self._tools.list()))

        # 5. Model providers (constructed lazily on first use)
        self._providers = self._provider_factory_override or ProviderFactory(
            default_model=self._settings.anthropic_model
        )

        # 6. Agents (depend on EventBus, providers, tools)
        self._registry = AgentRegistry(self._event_bus)
        self._agent_factory = AgentFactory(self._providers, self._tools, self._event_bus)

        # 7. MessageBus (depends on AgentRegistry + EventBus)
        self._message_bus = MessageBus(self._registry, self._event_bus)

        # 8. WorkflowScheduler (depends on AgentRegistry + EventBus)
        self._scheduler = WorkflowScheduler(
            self._registry,
            self._event_bus,
            step_timeout=self._settings.step_timeout,
            max_concurrency=self._settings.max_concurrency,
            retry_policy=RetryPolicy(
                max_attempts=self._settings.retry_attempts,
                delay=self._settings.retry_delay,
            ),
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._registry is not None:
            await self._registry.clear()
        if self._event_bus is not None:
            await self._event_bus.drain()
        if self._tracker is not None:
            await self._tracker.stop()
        if self._storage is not None:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._registry is not None:
            await self._registry.clear()
        if self._event_bus is not None:
            await self._event_bus.drain()
        if self._message_bus is not None:
            self._message_bus.clear()
        if self._storage is not None:
            await self._storage.clear()
            logger.info("Storage cleared")
        logger.info("Reset complete")

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if self._storage is None:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def event_bus(self) -> EventBus:
        if self._event_bus is None:
            raise RuntimeError("Application not started")
        return self._event_bus

    @property
    def tracker(self) -> ITracker:
        if self._tracker is None:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def tools(self) -> ToolRegistry:
        if self._tools is None:
            raise RuntimeError("Application not started")
        return self._tools

    @property
    def providers(self) -> ProviderFactory:
        if self._providers is None:
            raise RuntimeError("Application not started")
        return self._providers

    @property
    def registry(self) -> AgentRegistry:
        """Get agent registry instance."""
        if self._registry is None:
            raise RuntimeError("Application not started")
        return self._registry

    @property
    def agent_factory(self) -> AgentFactory:
        if self._agent_factory is None:
            raise RuntimeError("Application not started")
        return self._agent_factory

    @property
    def message_bus(self) -> MessageBus:
        if self._message_bus is None:
            raise RuntimeError("Application not started")
        return self._message_bus

    @property
    def scheduler(self) -> WorkflowScheduler:
        """Get workflow scheduler instance."""
        if self._scheduler is None:
            raise RuntimeError("Application not started")
        return self._scheduler
