"""agentflow: agent runtime and multi-agent workflow scheduler."""

from .app import Application, IApplication
from .cancellation import CancellationToken
from .errors import (
    AgentAlreadyRegisteredError,
    AgentFlowError,
    AgentNotFoundError,
    DeadlineExceededError,
    ErrorCode,
    ExecutionCancelledError,
    ExecutionError,
    InvalidWorkflowError,
    ProviderError,
    RuntimeDestroyedError,
    ToolExecutionError,
    ToolNotFoundError,
    WorkflowNotFoundError,
)
from .event_bus import BusEvent, EventBus, EventType, IEventBus
from .llm import AnthropicProvider, ChatResponse, IModelProvider, ProviderFactory
from .messaging import MessageBus
from .runtime import AgentFactory, AgentRegistry, AgentRuntime, IAgent
from .storage import IStorage, Storage
from .tools import BaseTool, FunctionTool, ITool, ToolRegistry
from .tracker import ITracker, Tracker
from .workflow import ConcurrencyLimiter, WorkflowScheduler, bind_variables

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Errors
    "AgentAlreadyRegisteredError",
    "AgentFlowError",
    "AgentNotFoundError",
    "DeadlineExceededError",
    "ErrorCode",
    "ExecutionCancelledError",
    "ExecutionError",
    "InvalidWorkflowError",
    "ProviderError",
    "RuntimeDestroyedError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "WorkflowNotFoundError",
    # Components
    "AgentFactory",
    "AgentRegistry",
    "AgentRuntime",
    "AnthropicProvider",
    "BaseTool",
    "BusEvent",
    "CancellationToken",
    "ChatResponse",
    "ConcurrencyLimiter",
    "EventBus",
    "EventType",
    "FunctionTool",
    "IAgent",
    "IEventBus",
    "IModelProvider",
    "IStorage",
    "ITool",
    "ITracker",
    "MessageBus",
    "ProviderFactory",
    "Storage",
    "ToolRegistry",
    "Tracker",
    "WorkflowScheduler",
    "bind_variables",
]
