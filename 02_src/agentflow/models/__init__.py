"""Core data models for agentflow."""

from .agents import (
    AgentCapabilities,
    AgentConfig,
    AgentExecutionContext,
    AgentExecutionResult,
    AgentExecutionStep,
    AgentMetrics,
    AgentStatus,
    ExecutionMetadata,
    ExecutionState,
    ProviderSettings,
    StepType,
)
from .messages import BROADCAST, AgentMessage, MessageMetadata, MessageType, Priority
from .tracing import TraceEvent
from .workflows import (
    Backoff,
    ErrorHandling,
    ExecutionMode,
    RetryPolicy,
    WorkflowDefinition,
    WorkflowExecutionContext,
    WorkflowExecutionResult,
    WorkflowMetadata,
    WorkflowState,
    WorkflowStep,
)

__all__ = [
    # Agents
    "AgentCapabilities",
    "AgentConfig",
    "AgentExecutionContext",
    "AgentExecutionResult",
    "AgentExecutionStep",
    "AgentMetrics",
    "AgentStatus",
    "ExecutionMetadata",
    "ExecutionState",
    "ProviderSettings",
    "StepType",
    # Workflows
    "Backoff",
    "ErrorHandling",
    "ExecutionMode",
    "RetryPolicy",
    "WorkflowDefinition",
    "WorkflowExecutionContext",
    "WorkflowExecutionResult",
    "WorkflowMetadata",
    "WorkflowState",
    "WorkflowStep",
    # Messages
    "BROADCAST",
    "AgentMessage",
    "MessageMetadata",
    "MessageType",
    "Priority",
    # Tracing
    "TraceEvent",
]
