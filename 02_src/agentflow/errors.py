"""Error codes, error records and the exception hierarchy."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Classification of failures surfaced in results and exceptions."""

    EXECUTION_ERROR = "EXECUTION_ERROR"
    TOOL_EXECUTION_ERROR = "TOOL_EXECUTION_ERROR"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    AGENT_ALREADY_REGISTERED = "AGENT_ALREADY_REGISTERED"
    WORKFLOW_EXECUTION_ERROR = "WORKFLOW_EXECUTION_ERROR"
    WORKFLOW_NOT_FOUND = "WORKFLOW_NOT_FOUND"
    INVALID_WORKFLOW = "INVALID_WORKFLOW"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"


@dataclass
class ExecutionError:
    """Error record attached to agent and workflow results."""

    code: ErrorCode
    message: str
    step_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    recoverable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "step_id": self.step_id,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class AgentFlowError(Exception):
    """Base class for all agentflow exceptions."""

    code: ErrorCode = ErrorCode.EXECUTION_ERROR
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        step_id: str | None = None,
        details: dict[str, Any] | None = None,
        recoverable: bool | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.step_id = step_id
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable

    def to_error(self) -> ExecutionError:
        """Convert to an ExecutionError record."""
        return ExecutionError(
            code=self.code,
            message=self.message,
            step_id=self.step_id,
            details=dict(self.details),
            recoverable=self.recoverable,
        )


class ProviderError(AgentFlowError):
    """Model provider call failed."""

    code = ErrorCode.EXECUTION_ERROR
    recoverable = True


class ToolExecutionError(AgentFlowError):
    """A tool raised or rejected its input."""

    code = ErrorCode.TOOL_EXECUTION_ERROR
    recoverable = True


class ToolNotFoundError(AgentFlowError):
    code = ErrorCode.TOOL_NOT_FOUND


class AgentNotFoundError(AgentFlowError):
    code = ErrorCode.AGENT_NOT_FOUND


class AgentAlreadyRegisteredError(AgentFlowError):
    code = ErrorCode.AGENT_ALREADY_REGISTERED


class WorkflowExecutionError(AgentFlowError):
    """A non-optional step failure aborted the workflow."""

    code = ErrorCode.WORKFLOW_EXECUTION_ERROR


class WorkflowNotFoundError(AgentFlowError):
    code = ErrorCode.WORKFLOW_NOT_FOUND


class InvalidWorkflowError(AgentFlowError, ValueError):
    """Workflow definition violates its structural contract."""

    code = ErrorCode.INVALID_WORKFLOW


class DeadlineExceededError(AgentFlowError):
    """A step or workflow deadline passed."""

    code = ErrorCode.TIMEOUT
    recoverable = True


class ExecutionCancelledError(AgentFlowError):
    """Execution was cancelled through its cancellation token."""

    code = ErrorCode.CANCELLED


class RuntimeDestroyedError(RuntimeError):
    """execute() called on a destroyed AgentRuntime."""
