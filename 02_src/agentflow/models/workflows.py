"""Workflow data models."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from ..errors import ExecutionError, InvalidWorkflowError
from .agents import AgentExecutionResult


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    MIXED = "mixed"


class ErrorHandling(str, Enum):
    FAIL_FAST = "fail_fast"
    CONTINUE = "continue"
    RETRY = "retry"


class WorkflowState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Backoff(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


_WORKFLOW_TRANSITIONS: dict[WorkflowState, frozenset[WorkflowState]] = {
    WorkflowState.PENDING: frozenset({WorkflowState.RUNNING}),
    WorkflowState.RUNNING: frozenset(
        {WorkflowState.COMPLETED, WorkflowState.FAILED, WorkflowState.CANCELLED}
    ),
    WorkflowState.COMPLETED: frozenset(),
    WorkflowState.FAILED: frozenset(),
    WorkflowState.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how fast a failed step is re-attempted."""

    max_attempts: int = 3
    delay: float = 1.0
    backoff: Backoff = Backoff.LINEAR

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1 = first retry)."""
        if self.backoff == Backoff.EXPONENTIAL:
            return self.delay * (2 ** (retry_number - 1))
        return self.delay * retry_number


StepCondition = Callable[["WorkflowExecutionContext"], bool]


@dataclass
class WorkflowStep:
    """One node of a workflow."""

    id: str
    agent_id: str
    input: str
    name: str = ""
    dependencies: list[str] = field(default_factory=list)
    condition: StepCondition | None = None
    retry: RetryPolicy | None = None
    timeout: float | None = None
    optional: bool = False


@dataclass
class WorkflowDefinition:
    """Steps, dependency edges, execution mode and error policy."""

    id: str
    name: str
    steps: list[WorkflowStep]
    mode: ExecutionMode = ExecutionMode.SEQUENTIAL
    error_handling: ErrorHandling = ErrorHandling.FAIL_FAST
    description: str = ""
    timeout: float | None = None
    max_concurrency: int | None = None

    def get_step(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def validate(self) -> None:
        """Raise InvalidWorkflowError if the definition is malformed."""
        if not self.steps:
            raise InvalidWorkflowError(f"Workflow {self.id} has no steps")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise InvalidWorkflowError("max_concurrency must be at least 1")
        if self.timeout is not None and self.timeout <= 0:
            raise InvalidWorkflowError("Workflow timeout must be positive")

        ids: set[str] = set()
        for step in self.steps:
            if step.id in ids:
                raise InvalidWorkflowError(f"Duplicate step id: {step.id}", step_id=step.id)
            ids.add(step.id)

        for step in self.steps:
            if step.timeout is not None and step.timeout <= 0:
                raise InvalidWorkflowError(
                    f"Step {step.id} timeout must be positive", step_id=step.id
                )
            if step.retry is not None and step.retry.max_attempts < 1:
                raise InvalidWorkflowError(
                    f"Step {step.id} retry.max_attempts must be at least 1", step_id=step.id
                )
            for dep in step.dependencies:
                if dep == step.id:
                    raise InvalidWorkflowError(
                        f"Step {step.id} depends on itself", step_id=step.id
                    )
                if dep not in ids:
                    raise InvalidWorkflowError(
                        f"Step {step.id} depends on unknown step {dep}", step_id=step.id
                    )

        cycle = self._find_cycle()
        if cycle:
            raise InvalidWorkflowError(
                f"Dependency cycle: {' -> '.join(cycle)}", step_id=cycle[0]
            )

    def _find_cycle(self) -> list[str] | None:
        graph = {step.id: step.dependencies for step in self.steps}
        visiting: set[str] = set()
        done: set[str] = set()
        path: list[str] = []

        def visit(node: str) -> list[str] | None:
            visiting.add(node)
            path.append(node)
            for dep in graph[node]:
                if dep in visiting:
                    return path[path.index(dep):] + [dep]
                if dep not in done:
                    found = visit(dep)
                    if found:
                        return found
            visiting.discard(node)
            done.add(node)
            path.pop()
            return None

        for node in graph:
            if node not in done:
                found = visit(node)
                if found:
                    return found
        return None


@dataclass
class WorkflowExecutionContext:
    """Live state of one execute_workflow call."""

    workflow: WorkflowDefinition
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: WorkflowState = WorkflowState.PENDING
    step_results: dict[str, AgentExecutionResult] = field(default_factory=dict)
    step_errors: dict[str, ExecutionError] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=_now)
    ended_at: datetime | None = None
    running_steps: set[str] = field(default_factory=set)
    completed_steps: set[str] = field(default_factory=set)
    failed_steps: set[str] = field(default_factory=set)
    skipped_steps: set[str] = field(default_factory=set)
    retries_performed: int = 0
    error: ExecutionError | None = None

    @property
    def is_terminal(self) -> bool:
        return not _WORKFLOW_TRANSITIONS[self.state]

    @property
    def elapsed(self) -> float:
        end = self.ended_at or _now()
        return (end - self.started_at).total_seconds()

    def transition(self, new_state: WorkflowState) -> None:
        """Move forward to new_state."""
        if new_state not in _WORKFLOW_TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid workflow state transition: {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        if self.is_terminal:
            self.ended_at = _now()

    def is_resolved(self, step_id: str) -> bool:
        return (
            step_id in self.completed_steps
            or step_id in self.failed_steps
            or step_id in self.skipped_steps
        )

    def mark_running(self, step_id: str) -> None:
        if step_id in self.running_steps or self.is_resolved(step_id):
            raise ValueError(f"Step {step_id} already started")
        self.running_steps.add(step_id)

    def mark_completed(self, step_id: str, result: AgentExecutionResult) -> None:
        """Record a successful step and publish its output as step_<id>."""
        if step_id not in self.running_steps:
            raise ValueError(f"Step {step_id} is not running")
        self.running_steps.discard(step_id)
        self.completed_steps.add(step_id)
        self.step_results[step_id] = result
        self.variables[f"step_{step_id}"] = result.output

    def mark_failed(self, step_id: str, error: ExecutionError) -> None:
        if self.is_resolved(step_id):
            raise ValueError(f"Step {step_id} already resolved")
        self.running_steps.discard(step_id)
        self.failed_steps.add(step_id)
        self.step_errors[step_id] = error

    def mark_skipped(self, step_id: str) -> None:
        if step_id in self.running_steps or self.is_resolved(step_id):
            raise ValueError(f"Step {step_id} cannot be skipped")
        self.skipped_steps.add(step_id)


@dataclass
class WorkflowMetadata:
    execution_time: float
    steps_executed: int
    steps_failed: int
    retries_performed: int


@dataclass
class WorkflowExecutionResult:
    """Aggregated outcome of execute_workflow."""

    success: bool
    context: WorkflowExecutionContext
    metadata: WorkflowMetadata
    output: dict[str, Any] | None = None
    error: ExecutionError | None = None
