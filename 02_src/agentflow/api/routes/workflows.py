"""Workflow execution API routes."""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ...app import Application
from ...models import (
    Backoff,
    ErrorHandling,
    ExecutionMode,
    RetryPolicy,
    WorkflowDefinition,
    WorkflowExecutionContext,
    WorkflowStep,
)
from ..errors import to_http_exception


class RetryRequest(BaseModel):
    max_attempts: int = Field(3, ge=1)
    delay: float = Field(1.0, ge=0.0)
    backoff: Backoff = Backoff.LINEAR


class StepRequest(BaseModel):
    id: str
    agent_id: str
    input: str
    name: str = ""
    dependencies: list[str] = Field(default_factory=list)
    retry: RetryRequest | None = None
    timeout: float | None = None
    optional: bool = False


class WorkflowRequest(BaseModel):
    """Request model for executing a workflow definition."""

    id: str
    name: str
    steps: list[StepRequest]
    mode: ExecutionMode = ExecutionMode.SEQUENTIAL
    error_handling: ErrorHandling = ErrorHandling.FAIL_FAST
    description: str = ""
    timeout: float | None = None
    max_concurrency: int | None = None
    input: Any = None

    def to_definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=self.id,
            name=self.name,
            steps=[
                WorkflowStep(
                    id=s.id,
                    agent_id=s.agent_id,
                    input=s.input,
                    name=s.name,
                    dependencies=list(s.dependencies),
                    retry=RetryPolicy(**s.retry.model_dump()) if s.retry else None,
                    timeout=s.timeout,
                    optional=s.optional,
                )
                for s in self.steps
            ],
            mode=self.mode,
            error_handling=self.error_handling,
            description=self.description,
            timeout=self.timeout,
            max_concurrency=self.max_concurrency,
        )


class ExecutionStatusResponse(BaseModel):
    execution_id: str
    workflow_id: str
    state: str
    running_steps: list[str]
    completed_steps: list[str]
    failed_steps: list[str]
    skipped_steps: list[str]
    step_errors: dict[str, dict[str, Any]]
    retries_performed: int
    elapsed: float
    error: dict[str, Any] | None


class WorkflowResultResponse(BaseModel):
    execution_id: str
    success: bool
    state: str
    output: Any
    error: dict[str, Any] | None
    metadata: dict[str, Any]


class WorkflowStatsResponse(BaseModel):
    total_workflows: int
    successful_workflows: int
    failed_workflows: int
    active_workflows: int
    average_execution_time: float


def _context_to_dict(context: WorkflowExecutionContext) -> dict:
    return {
        "execution_id": context.id,
        "workflow_id": context.workflow.id,
        "state": context.state.value,
        "running_steps": sorted(context.running_steps),
        "completed_steps": sorted(context.completed_steps),
        "failed_steps": sorted(context.failed_steps),
        "skipped_steps": sorted(context.skipped_steps),
        "step_errors": {k: v.to_dict() for k, v in context.step_errors.items()},
        "retries_performed": context.retries_performed,
        "elapsed": context.elapsed,
        "error": context.error.to_dict() if context.error else None,
    }


def create_workflows_router(app: Application) -> APIRouter:
    """Create workflows router."""
    router = APIRouter(prefix="/api/workflows", tags=["workflows"])

    @router.post("/execute", response_model=WorkflowResultResponse)
    async def execute_workflow(request: WorkflowRequest) -> dict:
        """Run a workflow and wait for its result."""
        try:
            result = await app.scheduler.execute_workflow(
                request.to_definition(), input=request.input
            )
            return {
                "execution_id": result.context.id,
                "success": result.success,
                "state": result.context.state.value,
                "output": jsonable_encoder(result.output),
                "error": result.error.to_dict() if result.error else None,
                "metadata": asdict(result.metadata),
            }
        except Exception as e:
            raise to_http_exception(e) from e

    @router.get("/executions", response_model=list[ExecutionStatusResponse])
    async def list_executions() -> list[dict]:
        """List running executions."""
        return [_context_to_dict(c) for c in app.scheduler.list_executions()]

    @router.get("/executions/{execution_id}", response_model=ExecutionStatusResponse)
    async def get_execution(execution_id: str) -> dict:
        context = app.scheduler.get_execution_status(execution_id)
        if context is None:
            raise HTTPException(
                status_code=404, detail=f"Workflow execution {execution_id} not found"
            )
        return _context_to_dict(context)

    @router.post("/executions/{execution_id}/cancel")
    async def cancel_execution(execution_id: str) -> dict:
        """Cancel a running execution."""
        try:
            cancelled = await app.scheduler.cancel_workflow(execution_id)
            return {"execution_id": execution_id, "cancelled": cancelled}
        except Exception as e:
            raise to_http_exception(e) from e

    @router.get("/stats", response_model=WorkflowStatsResponse)
    async def get_stats() -> dict:
        return asdict(app.scheduler.get_stats())

    return router
