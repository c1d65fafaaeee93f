"""Agent-related data models."""

import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ..errors import ExecutionError


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionState(str, Enum):
    """State of one agent execution context."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class StepType(str, Enum):
    """Kind of an AgentExecutionStep."""

    REASONING = "reasoning"
    TOOL_CALL = "tool_call"
    COMMUNICATION = "communication"
    DECISION = "decision"
    ERROR = "error"


_AGENT_TRANSITIONS: dict[ExecutionState, frozenset[ExecutionState]] = {
    ExecutionState.IDLE: frozenset({ExecutionState.RUNNING}),
    ExecutionState.RUNNING: frozenset(
        {ExecutionState.PAUSED, ExecutionState.COMPLETED, ExecutionState.ERROR}
    ),
    ExecutionState.PAUSED: frozenset({ExecutionState.RUNNING}),
    ExecutionState.COMPLETED: frozenset(),
    ExecutionState.ERROR: frozenset(),
}


@dataclass(frozen=True)
class AgentCapabilities:
    """What an agent is allowed to do and its resource limits (seconds)."""

    can_use_tool: bool = False
    can_communicate: bool = False
    can_make_decisions: bool = False
    can_learn: bool = False
    max_execution_time: float | None = None
    max_concurrent_tools: int | None = None


@dataclass(frozen=True)
class ProviderSettings:
    """Model provider binding of an agent."""

    name: str
    model: str
    temperature: float | None = None
    max_tokens: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentConfig:
    """Static agent configuration. Changed only through updated()."""

    id: str
    name: str
    role: str
    system_prompt: str
    provider: ProviderSettings
    description: str = ""
    capabilities: AgentCapabilities = field(default_factory=AgentCapabilities)
    tools: tuple[str, ...] = ()
    settings: dict[str, Any] = field(default_factory=dict)
    active: bool = True
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def updated(self, **changes: Any) -> "AgentConfig":
        """Return a copy with changes applied and updated_at bumped."""
        if "id" in changes and changes["id"] != self.id:
            raise ValueError("Agent id cannot be changed")
        if "tools" in changes:
            changes["tools"] = tuple(changes["tools"])
        changes.pop("created_at", None)
        changes["updated_at"] = _now()
        return dataclasses.replace(self, **changes)


@dataclass
class AgentExecutionStep:
    """A single record in an execution history."""

    type: StepType
    input: Any
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)
    output: Any = None
    duration: float | None = None
    error: ExecutionError | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def finish(self, output: Any = None, error: ExecutionError | None = None) -> None:
        """Record output or error and the elapsed duration."""
        self.output = output
        self.error = error
        self.duration = (_now() - self.timestamp).total_seconds()

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class AgentExecutionContext:
    """Mutable record of one agent invocation."""

    agent_id: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: ExecutionState = ExecutionState.IDLE
    variables: dict[str, Any] = field(default_factory=dict)
    history: list[AgentExecutionStep] = field(default_factory=list)
    started_at: datetime = field(default_factory=_now)
    ended_at: datetime | None = None
    error: ExecutionError | None = None

    def transition(self, new_state: ExecutionState) -> None:
        """Move to new_state, rejecting transitions the lifecycle forbids."""
        if new_state not in _AGENT_TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid execution state transition: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        if new_state in (ExecutionState.COMPLETED, ExecutionState.ERROR):
            self.ended_at = _now()

    def add_step(self, step: AgentExecutionStep) -> None:
        self.history.append(step)

    @property
    def tool_calls(self) -> list[AgentExecutionStep]:
        return [s for s in self.history if s.type == StepType.TOOL_CALL]

    @property
    def elapsed(self) -> float:
        end = self.ended_at or _now()
        return (end - self.started_at).total_seconds()


@dataclass
class ExecutionMetadata:
    """Metadata of one agent execution."""

    execution_time: float
    step_count: int
    tools_used: int
    token_usage: dict[str, int] | None = None


@dataclass
class AgentExecutionResult:
    """Terminal outcome of one agent invocation."""

    success: bool
    output: Any
    context: AgentExecutionContext
    metadata: ExecutionMetadata
    error: ExecutionError | None = None


@dataclass
class AgentMetrics:
    """Rolling execution metrics of an agent."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    average_execution_time: float = 0.0
    last_execution_at: datetime | None = None

    def record(self, execution_time: float, success: bool) -> None:
        self.total_executions += 1
        if success:
            self.successful_executions += 1
        else:
            self.failed_executions += 1
        total = self.total_executions
        self.average_execution_time = (
            self.average_execution_time * (total - 1) + execution_time
        ) / total
        self.last_execution_at = _now()


@dataclass
class AgentStatus:
    """Agent-level status snapshot."""

    id: str
    state: ExecutionState = ExecutionState.IDLE
    execution_id: str | None = None
    last_result: AgentExecutionResult | None = None
    metrics: AgentMetrics = field(default_factory=AgentMetrics)
