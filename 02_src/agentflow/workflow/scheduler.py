"""WorkflowScheduler: drives multi-step agent workflows."""

import asyncio
import dataclasses
from collections import OrderedDict
from typing import Any

from ..cancellation import CancellationToken
from ..config import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY,
    DEFAULT_STEP_TIMEOUT,
)
from ..errors import (
    AgentFlowError,
    ErrorCode,
    ExecutionError,
    WorkflowExecutionError,
    WorkflowNotFoundError,
)
from ..event_bus import EventType, IEventBus
from ..logging_config import get_logger
from ..models import (
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
from ..runtime import AgentRegistry
from .binder import bind_variables, unresolved_placeholders
from .limiter import ConcurrencyLimiter

logger = get_logger(__name__)

_NEVER_RETRIED = frozenset({ErrorCode.AGENT_NOT_FOUND, ErrorCode.CANCELLED})


@dataclasses.dataclass
class WorkflowStats:
    total_workflows: int = 0
    successful_workflows: int = 0
    failed_workflows: int = 0
    active_workflows: int = 0
    average_execution_time: float = 0.0


class WorkflowScheduler:
    """
    Executes WorkflowDefinitions against agents from an AgentRegistry.

    Each execute_workflow call gets its own context, cancellation token and
    concurrency limiter. Steps bound to the same agent id never overlap: the
    scheduler serializes them with one lock per agent, and a timed-out call
    keeps that lock until it really finishes.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        event_bus: IEventBus | None = None,
        step_timeout: float = DEFAULT_STEP_TIMEOUT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        retry_policy: RetryPolicy | None = None,
        history_limit: int = 100,
    ):
        self._registry = registry
        self._event_bus = event_bus
        self._step_timeout = step_timeout
        self._max_concurrency = max_concurrency
        self._retry_policy = retry_policy or RetryPolicy(
            max_attempts=DEFAULT_RETRY_ATTEMPTS, delay=DEFAULT_RETRY_DELAY
        )
        self._history_limit = history_limit

        self._contexts: OrderedDict[str, WorkflowExecutionContext] = OrderedDict()
        self._tokens: dict[str, CancellationToken] = {}
        self._agent_locks: dict[str, asyncio.Lock] = {}
        self._orphans: set[asyncio.Task] = set()
        # execution id -> ids of its steps that hold an agent lock
        self._lock_holders: dict[str, set[str]] = {}

        self._total = 0
        self._successful = 0
        self._failed = 0
        self._total_time = 0.0

    async def execute_workflow(
        self, definition: WorkflowDefinition, input: Any = None
    ) -> WorkflowExecutionResult:
        """
        Run a workflow to completion.

        Raises:
            InvalidWorkflowError: the definition is malformed

        Returns:
            WorkflowExecutionResult. Step failures, timeouts and cancellation
            are reported through success/error, never raised.
        """
        definition.validate()

        context = WorkflowExecutionContext(workflow=definition)
        if input is not None:
            context.variables["input"] = input
        context.transition(WorkflowState.RUNNING)
        token = CancellationToken(timeout=definition.timeout)

        self._remember(context)
        self._tokens[context.id] = token
        self._total += 1

        logger.info(
            "Workflow %s started: execution=%s mode=%s steps=%d",
            definition.id,
            context.id,
            definition.mode.value,
            len(definition.steps),
            extra={"workflow_id": definition.id, "execution_id": context.id},
        )
        await self._emit(
            EventType.WORKFLOW_START,
            context,
            mode=definition.mode.value,
            error_handling=definition.error_handling.value,
        )

        try:
            if definition.mode == ExecutionMode.SEQUENTIAL:
                abort = await self._run_sequential(context, token)
            else:
                abort = await self._run_graph(
                    context, token, honor_dependencies=definition.mode == ExecutionMode.MIXED
                )
        finally:
            self._tokens.pop(context.id, None)

        return await self._finish(context, abort)

    # Execution modes

    async def _run_sequential(
        self, context: WorkflowExecutionContext, token: CancellationToken
    ) -> ExecutionError | None:
        for step in context.workflow.steps:
            abort = self._token_error(context, token)
            if abort:
                return abort

            if not all(dep in context.completed_steps for dep in step.dependencies):
                await self._skip(step, context, "dependency not completed")
                continue

            if await self._admit(step, context):
                ok = await self._execute_step(step, context, token)
            else:
                ok = step.id not in context.failed_steps

            if not ok:
                abort = self._token_error(context, token) or self._halting_error(step, context)
                if abort:
                    return abort

        return None

    async def _run_graph(
        self,
        context: WorkflowExecutionContext,
        token: CancellationToken,
        honor_dependencies: bool,
    ) -> ExecutionError | None:
        """Breadth-expanding execution: readiness is re-scanned after every completion."""
        workflow = context.workflow
        if workflow.max_concurrency is not None:
            cap = workflow.max_concurrency
        elif honor_dependencies:
            cap = self._max_concurrency
        else:
            cap = len(workflow.steps)

        limiter = ConcurrencyLimiter(cap)
        halted = asyncio.Event()
        pending = list(workflow.steps)
        tasks: dict[asyncio.Task, WorkflowStep] = {}
        abort: ExecutionError | None = None

        while True:
            if abort is None:
                abort = self._token_error(context, token)
                if abort:
                    halted.set()

            # Rescan until stable: a skip or failed condition can resolve further dependents
            rescan = abort is None
            while rescan:
                rescan = False
                for step in list(pending):
                    if honor_dependencies:
                        if any(
                            dep in context.failed_steps or dep in context.skipped_steps
                            for dep in step.dependencies
                        ):
                            pending.remove(step)
                            await self._skip(step, context, "dependency failed or skipped")
                            rescan = True
                            continue
                        if not all(dep in context.completed_steps for dep in step.dependencies):
                            continue

                    pending.remove(step)
                    if not await self._admit(step, context):
                        rescan = True
                        if step.id in context.failed_steps:
                            abort = self._halting_error(step, context)
                            if abort:
                                halted.set()
                                rescan = False
                                break
                        continue

                    task = asyncio.create_task(
                        self._run_limited(step, context, token, limiter, halted)
                    )
                    tasks[task] = step

            if not tasks:
                break

            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                step = tasks.pop(task)
                if task.result() is False and abort is None:
                    abort = self._token_error(context, token) or self._halting_error(step, context)
                    if abort:
                        halted.set()

        return abort

    async def _run_limited(
        self,
        step: WorkflowStep,
        context: WorkflowExecutionContext,
        token: CancellationToken,
        limiter: ConcurrencyLimiter,
        halted: asyncio.Event,
    ) -> bool | None:
        async with limiter:
            if halted.is_set():
                return None
            return await self._execute_step(step, context, token)

    # Per-step execution

    async def _admit(self, step: WorkflowStep, context: WorkflowExecutionContext) -> bool:
        """Evaluate the step condition. False means the step was skipped or failed."""
        if step.condition is None:
            return True

        try:
            allowed = bool(step.condition(context))
        except Exception as e:
            logger.warning("Condition of step %s raised: %s", step.id, e)
            error = ExecutionError(
                code=ErrorCode.EXECUTION_ERROR,
                message=f"Condition of step {step.id} raised: {e}",
                step_id=step.id,
            )
            context.mark_failed(step.id, error)
            await self._emit(
                EventType.STEP_ERROR, context, step_id=step.id, error=error.to_dict()
            )
            return False

        if not allowed:
            await self._skip(step, context, "condition not met")
        return allowed

    async def _execute_step(
        self, step: WorkflowStep, context: WorkflowExecutionContext, token: CancellationToken
    ) -> bool:
        """Run a step with its retry policy. Returns True when it completed."""
        context.mark_running(step.id)
        await self._emit(EventType.STEP_START, context, step_id=step.id, agent_id=step.agent_id)

        policy = self._retry_policy_for(step, context.workflow)
        max_attempts = policy.max_attempts if policy else 1
        attempt = 1

        while True:
            error = await self._attempt(step, context, token)
            if error is None:
                result = context.step_results[step.id]
                await self._emit(
                    EventType.STEP_COMPLETE,
                    context,
                    step_id=step.id,
                    agent_id=step.agent_id,
                    execution_time=result.metadata.execution_time,
                    attempts=attempt,
                )
                return True

            if (
                attempt >= max_attempts
                or error.code in _NEVER_RETRIED
                or token.cancelled
                or token.expired
            ):
                break

            delay = policy.delay_for(attempt)
            context.retries_performed += 1
            logger.info(
                "Retrying step %s (attempt %d/%d) in %.2fs: %s",
                step.id,
                attempt + 1,
                max_attempts,
                delay,
                error.message,
                extra={"execution_id": context.id, "step_id": step.id},
            )
            await self._emit(
                EventType.STEP_RETRY,
                context,
                step_id=step.id,
                attempt=attempt + 1,
                delay=delay,
                error=error.to_dict(),
            )
            try:
                await token.sleep(delay)
            except AgentFlowError as e:
                error = dataclasses.replace(e.to_error(), step_id=step.id)
                break
            attempt += 1

        context.mark_failed(step.id, error)
        logger.warning(
            "Step %s failed (%s): %s",
            step.id,
            error.code.value,
            error.message,
            extra={"execution_id": context.id, "step_id": step.id, "agent_id": step.agent_id},
        )
        await self._emit(
            EventType.STEP_ERROR,
            context,
            step_id=step.id,
            agent_id=step.agent_id,
            optional=step.optional,
            error=error.to_dict(),
        )
        return False

    async def _attempt(
        self, step: WorkflowStep, context: WorkflowExecutionContext, token: CancellationToken
    ) -> ExecutionError | None:
        agent = self._registry.get(step.agent_id)
        if agent is None:
            return ExecutionError(
                code=ErrorCode.AGENT_NOT_FOUND,
                message=f"Agent {step.agent_id} not found",
                step_id=step.id,
                details={"agent_id": step.agent_id},
            )

        bound_input = bind_variables(step.input, context.variables)
        unresolved = unresolved_placeholders(step.input, context.variables)
        if unresolved:
            logger.debug(
                "Step %s input has unresolved placeholders: %s",
                step.id,
                ", ".join(unresolved),
                extra={"execution_id": context.id, "step_id": step.id},
            )
        timeout = step.timeout or self._step_timeout
        step_token = token.child(timeout)
        lock = self._agent_locks.setdefault(step.agent_id, asyncio.Lock())

        acquire = asyncio.ensure_future(lock.acquire())
        try:
            await step_token.guard(acquire)
        except AgentFlowError as e:
            if acquire.done() and not acquire.cancelled():
                lock.release()
            acquire.cancel()
            return self._step_error(e, step, timeout)

        self._lock_holders.setdefault(context.id, set()).add(step.id)
        call = asyncio.ensure_future(
            agent.execute(bound_input, variables=dict(context.variables), token=step_token)
        )
        call.add_done_callback(lambda _: self._release_agent(lock, context.id, step.id))

        try:
            result = await step_token.guard(call)
        except AgentFlowError as e:
            # The call keeps running; it releases the agent lock when it ends
            self._orphans.add(call)
            call.add_done_callback(self._reap)
            return self._step_error(e, step, timeout)
        except Exception as e:
            logger.exception("Agent %s raised while executing step %s", step.agent_id, step.id)
            return ExecutionError(
                code=ErrorCode.EXECUTION_ERROR,
                message=str(e) or type(e).__name__,
                step_id=step.id,
                details={"agent_id": step.agent_id, "exception": type(e).__name__},
            )

        if not result.success:
            error = result.error or ExecutionError(
                code=ErrorCode.EXECUTION_ERROR, message=f"Agent {step.agent_id} failed"
            )
            return dataclasses.replace(error, step_id=step.id)

        context.mark_completed(step.id, result)
        return None

    def _step_error(self, exc: AgentFlowError, step: WorkflowStep, timeout: float) -> ExecutionError:
        error = dataclasses.replace(exc.to_error(), step_id=step.id)
        if error.code == ErrorCode.TIMEOUT:
            error.message = f"Step {step.id} exceeded its deadline (step timeout {timeout}s)"
            error.details = {**error.details, "timeout": timeout}
        return error

    def _release_agent(self, lock: asyncio.Lock, execution_id: str, step_id: str) -> None:
        held = self._lock_holders.get(execution_id)
        if held is not None:
            held.discard(step_id)
            if not held:
                del self._lock_holders[execution_id]
        lock.release()

    def _reap(self, task: asyncio.Task) -> None:
        self._orphans.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Abandoned agent call failed: %s", task.exception())

    def _retry_policy_for(
        self, step: WorkflowStep, workflow: WorkflowDefinition
    ) -> RetryPolicy | None:
        if step.retry is not None:
            return step.retry
        if workflow.error_handling == ErrorHandling.RETRY:
            return self._retry_policy
        return None

    async def _skip(self, step: WorkflowStep, context: WorkflowExecutionContext, reason: str) -> None:
        context.mark_skipped(step.id)
        logger.debug("Step %s skipped: %s", step.id, reason)
        await self._emit(EventType.STEP_SKIP, context, step_id=step.id, reason=reason)

    # Error policy

    def _halting_error(
        self, step: WorkflowStep, context: WorkflowExecutionContext
    ) -> ExecutionError | None:
        """Abort error for a failed step, or None when the policy absorbs it."""
        if step.optional or context.workflow.error_handling == ErrorHandling.CONTINUE:
            return None

        cause = context.step_errors[step.id]
        return WorkflowExecutionError(
            f"Step {step.id} failed: {cause.message}",
            step_id=step.id,
            details={"cause": cause.code.value, "step_error": cause.to_dict()},
        ).to_error()

    def _token_error(
        self, context: WorkflowExecutionContext, token: CancellationToken
    ) -> ExecutionError | None:
        if token.cancelled:
            return ExecutionError(
                code=ErrorCode.CANCELLED, message=token.reason or "Workflow cancelled"
            )
        if token.expired:
            return ExecutionError(
                code=ErrorCode.TIMEOUT,
                message=f"Workflow {context.workflow.id} exceeded its timeout of {token.timeout}s",
                details={"timeout": token.timeout},
                recoverable=True,
            )
        return None

    async def _finish(
        self, context: WorkflowExecutionContext, abort: ExecutionError | None
    ) -> WorkflowExecutionResult:
        workflow = context.workflow
        error = abort

        if error is None:
            failed_required = [
                s.id for s in workflow.steps if s.id in context.failed_steps and not s.optional
            ]
            if failed_required:
                first = context.step_errors[failed_required[0]]
                error = ExecutionError(
                    code=ErrorCode.WORKFLOW_EXECUTION_ERROR,
                    message=f"{len(failed_required)} step(s) failed: {', '.join(failed_required)}",
                    step_id=failed_required[0],
                    details={"cause": first.code.value, "failed_steps": failed_required},
                )

        if context.state == WorkflowState.CANCELLED:
            error = context.error or ExecutionError(
                code=ErrorCode.CANCELLED, message="Workflow cancelled"
            )
        elif error is None:
            context.transition(WorkflowState.COMPLETED)
        else:
            context.transition(WorkflowState.FAILED)

        success = error is None
        context.error = error
        metadata = WorkflowMetadata(
            execution_time=context.elapsed,
            steps_executed=len(context.completed_steps),
            steps_failed=len(context.failed_steps),
            retries_performed=context.retries_performed,
        )
        result = WorkflowExecutionResult(
            success=success,
            context=context,
            metadata=metadata,
            output=self._aggregate(context, metadata),
            error=error,
        )

        if success:
            self._successful += 1
        else:
            self._failed += 1
        self._total_time += metadata.execution_time

        if success:
            logger.info(
                "Workflow %s completed in %.3fs", workflow.id, metadata.execution_time
            )
            await self._emit(
                EventType.WORKFLOW_COMPLETE,
                context,
                execution_time=metadata.execution_time,
                steps_executed=metadata.steps_executed,
            )
        else:
            logger.warning(
                "Workflow %s ended in %s: %s %s",
                workflow.id,
                context.state.value,
                error.code.value,
                error.message,
            )
            await self._emit(EventType.WORKFLOW_ERROR, context, error=error.to_dict())

        return result

    def _aggregate(
        self, context: WorkflowExecutionContext, metadata: WorkflowMetadata
    ) -> dict[str, Any]:
        return {
            "step_results": {
                step_id: result.output for step_id, result in context.step_results.items()
            },
            "variables": dict(context.variables),
            "summary": {
                "total_steps": len(context.workflow.steps),
                "completed_steps": len(context.completed_steps),
                "failed_steps": len(context.failed_steps),
                "skipped_steps": len(context.skipped_steps),
                "execution_time": metadata.execution_time,
            },
        }

    # Control

    async def cancel_workflow(self, execution_id: str) -> bool:
        """
        Cancel a running execution.

        Advisory: running agent calls are asked to stop and their steps fail
        as CANCELLED, but nothing is forcibly interrupted.

        Returns:
            False if the execution had already finished.
        """
        context = self._contexts.get(execution_id)
        if context is None:
            raise WorkflowNotFoundError(f"Workflow execution {execution_id} not found")
        if context.is_terminal:
            return False

        context.transition(WorkflowState.CANCELLED)
        context.error = ExecutionError(code=ErrorCode.CANCELLED, message="Workflow cancelled")

        token = self._tokens.get(execution_id)
        if token is not None:
            token.cancel("Workflow cancelled")

        # Steps still queued on an agent lock must not stop the call holding it
        for step_id in sorted(self._lock_holders.get(execution_id, ())):
            step = context.workflow.get_step(step_id)
            agent = self._registry.get(step.agent_id) if step else None
            if agent is not None:
                await agent.stop()

        logger.info("Workflow execution %s cancelled", execution_id)
        await self._emit(
            EventType.WORKFLOW_CANCEL, context, running_steps=sorted(context.running_steps)
        )
        return True

    def get_execution_status(self, execution_id: str) -> WorkflowExecutionContext | None:
        return self._contexts.get(execution_id)

    def list_executions(self) -> list[WorkflowExecutionContext]:
        """Executions that are still running."""
        return [c for c in self._contexts.values() if c.id in self._tokens]

    def get_stats(self) -> WorkflowStats:
        finished = self._successful + self._failed
        return WorkflowStats(
            total_workflows=self._total,
            successful_workflows=self._successful,
            failed_workflows=self._failed,
            active_workflows=len(self._tokens),
            average_execution_time=self._total_time / finished if finished else 0.0,
        )

    def _remember(self, context: WorkflowExecutionContext) -> None:
        self._contexts[context.id] = context
        while len(self._contexts) > self._history_limit:
            oldest = next(
                (cid for cid in self._contexts if cid not in self._tokens and cid != context.id),
                None,
            )
            if oldest is None:
                break
            del self._contexts[oldest]

    async def _emit(
        self, event_type: EventType, context: WorkflowExecutionContext, **payload: Any
    ) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.emit(
            event_type,
            source="workflow_scheduler",
            execution_id=context.id,
            workflow_id=context.workflow.id,
            **payload,
        )
