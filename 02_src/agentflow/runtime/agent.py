"""AgentRuntime: one agent's reason -> tools -> respond loop."""

import asyncio
import dataclasses
from typing import Any, Protocol

from ..cancellation import CancellationToken
from ..errors import (
    AgentFlowError,
    ErrorCode,
    ExecutionError,
    ProviderError,
    RuntimeDestroyedError,
    ToolExecutionError,
    ToolNotFoundError,
)
from ..event_bus import EventType, IEventBus
from ..llm import ChatResponse, IModelProvider, ModelParams, ToolCall
from ..logging_config import get_logger
from ..models import (
    AgentConfig,
    AgentExecutionContext,
    AgentExecutionResult,
    AgentExecutionStep,
    AgentStatus,
    ExecutionMetadata,
    ExecutionState,
    StepType,
)
from ..tools import ITool, describe_tool

logger = get_logger(__name__)


class IAgent(Protocol):
    """What the scheduler, registry and message bus need from an agent."""

    @property
    def id(self) -> str:
        ...

    @property
    def config(self) -> AgentConfig:
        ...

    async def execute(
        self,
        input: str,
        variables: dict[str, Any] | None = None,
        token: CancellationToken | None = None,
    ) -> AgentExecutionResult:
        """Run one invocation. Ordinary failures come back in the result."""
        ...

    async def stop(self) -> None:
        ...

    async def update_config(self, **changes: Any) -> AgentConfig:
        ...

    def get_status(self) -> AgentStatus:
        ...


class AgentRuntime:
    """
    Executes a single agent against a model provider and its tools.

    One execution context is live at a time. stop(), pause() and resume()
    are cooperative: they are observed after the provider returns and
    before each tool call, never in the middle of one.
    """

    def __init__(
        self,
        config: AgentConfig,
        provider: IModelProvider,
        event_bus: IEventBus | None = None,
        tools: list[ITool] | None = None,
    ):
        self._config = config
        self._provider = provider
        self._event_bus = event_bus
        self._tools: dict[str, ITool] = {tool.id: tool for tool in tools or []}

        self._context: AgentExecutionContext | None = None
        self._status = AgentStatus(id=config.id)
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._stop_requested = False
        self._destroyed = False

    @property
    def id(self) -> str:
        return self._config.id

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def context(self) -> AgentExecutionContext | None:
        return self._context

    @property
    def tools(self) -> list[ITool]:
        return list(self._tools.values())

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    async def execute(
        self,
        input: str,
        variables: dict[str, Any] | None = None,
        token: CancellationToken | None = None,
    ) -> AgentExecutionResult:
        """
        Run one invocation of the agent.

        Args:
            input: User input for the model
            variables: Initial variable namespace of the execution context
            token: Cancellation token; its deadline and cancel flag are
                   checked at every checkpoint

        Returns:
            AgentExecutionResult. Provider and tool failures are reported
            through success=False, never raised.
        """
        if self._destroyed:
            raise RuntimeDestroyedError(f"Agent {self.id} has been destroyed")

        context = AgentExecutionContext(agent_id=self.id, variables=dict(variables or {}))
        context.transition(ExecutionState.RUNNING)
        self._context = context
        self._stop_requested = False
        self._resumed.set()
        self._status.state = ExecutionState.RUNNING
        self._status.execution_id = context.id

        run_token = (token or CancellationToken()).child(
            self._config.capabilities.max_execution_time
        )

        await self._emit(EventType.EXECUTION_START, execution_id=context.id, input=input)
        logger.debug("Agent %s execution %s started", self.id, context.id)

        try:
            response = await self._run(input, context, run_token)
        except AgentFlowError as e:
            return await self._fail(context, e.to_error())
        except Exception as e:
            logger.exception("Agent %s execution %s crashed", self.id, context.id)
            return await self._fail(
                context,
                ExecutionError(
                    code=ErrorCode.EXECUTION_ERROR,
                    message=str(e) or type(e).__name__,
                    details={"exception": type(e).__name__},
                ),
            )

        return await self._succeed(context, response)

    async def _run(
        self, input: str, context: AgentExecutionContext, token: CancellationToken
    ) -> ChatResponse:
        reasoning = AgentExecutionStep(type=StepType.REASONING, input={"input": input})
        context.add_step(reasoning)
        await self._emit(
            EventType.EXECUTION_STEP,
            execution_id=context.id,
            step_id=reasoning.id,
            step_type=reasoning.type.value,
        )

        offered = self._offered_tools()
        messages = [
            {"role": "system", "content": self._build_system_prompt(offered)},
            {"role": "user", "content": input},
        ]
        provider_settings = self._config.provider
        params = ModelParams(
            model=provider_settings.model,
            temperature=provider_settings.temperature,
            max_tokens=provider_settings.max_tokens or 1024,
        )

        try:
            response = await self._provider.chat(
                messages, params, [describe_tool(t) for t in offered] or None
            )
        except AgentFlowError as e:
            reasoning.finish(error=e.to_error())
            raise
        except Exception as e:
            error = ProviderError(f"LLM API error: {e}")
            reasoning.finish(error=error.to_error())
            raise error from e

        reasoning.finish(output=response.text)

        if not await self._checkpoint(context, token):
            return response

        # Tool calls are honoured only when tools were offered
        if offered:
            for call in response.tool_calls:
                if not await self._checkpoint(context, token):
                    return response
                await self._call_tool(call, context)

        await self._checkpoint(context, token)
        return response

    async def _call_tool(self, call: ToolCall, context: AgentExecutionContext) -> Any:
        step = AgentExecutionStep(
            type=StepType.TOOL_CALL,
            input={"tool_id": call.name, "arguments": call.arguments},
        )
        context.add_step(step)

        tool = self._tools.get(call.name)
        if tool is None:
            error = ToolNotFoundError(f"Tool {call.name} not found", details={"tool_id": call.name})
            step.finish(error=error.to_error())
            await self._emit(
                EventType.TOOL_ERROR, execution_id=context.id, tool_id=call.name, error=error.message
            )
            raise error

        await self._emit(
            EventType.TOOL_CALL,
            execution_id=context.id,
            tool_id=tool.id,
            arguments=call.arguments,
        )

        try:
            output = await tool.execute(call.arguments, context)
        except Exception as e:
            reason = e.message if isinstance(e, AgentFlowError) else str(e)
            error = ToolExecutionError(
                f"Tool {tool.id} execution failed: {reason}",
                details={"tool_id": tool.id},
            )
            step.finish(error=error.to_error())
            await self._emit(
                EventType.TOOL_ERROR, execution_id=context.id, tool_id=tool.id, error=error.message
            )
            raise error from e

        step.finish(output=output)
        await self._emit(
            EventType.TOOL_RESULT, execution_id=context.id, tool_id=tool.id, output=output
        )
        return output

    async def _checkpoint(self, context: AgentExecutionContext, token: CancellationToken) -> bool:
        """Observe cancellation, deadlines and pause. False once stop() was called."""
        token.raise_if_cancelled()

        while context.state == ExecutionState.PAUSED and not self._resumed.is_set():
            waiter = asyncio.ensure_future(self._resumed.wait())
            try:
                await token.guard(waiter)
            finally:
                waiter.cancel()

        token.raise_if_cancelled()
        return not self._stop_requested

    async def _succeed(
        self, context: AgentExecutionContext, response: ChatResponse
    ) -> AgentExecutionResult:
        if context.state == ExecutionState.RUNNING:
            context.transition(ExecutionState.COMPLETED)

        result = AgentExecutionResult(
            success=True,
            output=response.text,
            context=context,
            metadata=self._metadata(context, response.usage),
        )
        self._record(result, ExecutionState.IDLE)

        await self._emit(
            EventType.EXECUTION_COMPLETE,
            execution_id=context.id,
            execution_time=result.metadata.execution_time,
            step_count=result.metadata.step_count,
        )
        return result

    async def _fail(
        self, context: AgentExecutionContext, error: ExecutionError
    ) -> AgentExecutionResult:
        context.error = error
        if context.state == ExecutionState.PAUSED:
            context.transition(ExecutionState.RUNNING)
        if context.state == ExecutionState.RUNNING:
            context.transition(ExecutionState.ERROR)

        result = AgentExecutionResult(
            success=False,
            output=None,
            context=context,
            metadata=self._metadata(context, None),
            error=error,
        )
        self._record(result, ExecutionState.ERROR)

        logger.warning(
            "Agent %s execution %s failed: %s %s",
            self.id,
            context.id,
            error.code.value,
            error.message,
            extra={"agent_id": self.id, "execution_id": context.id},
        )
        await self._emit(EventType.EXECUTION_ERROR, execution_id=context.id, error=error.to_dict())
        return result

    def _metadata(
        self, context: AgentExecutionContext, usage: dict[str, int] | None
    ) -> ExecutionMetadata:
        return ExecutionMetadata(
            execution_time=context.elapsed,
            step_count=len(context.history),
            tools_used=len(context.tool_calls),
            token_usage=usage,
        )

    def _record(self, result: AgentExecutionResult, state: ExecutionState) -> None:
        self._status.state = state
        self._status.execution_id = None
        self._status.last_result = result
        self._status.metrics.record(result.metadata.execution_time, result.success)

    def _offered_tools(self) -> list[ITool]:
        if not self._config.capabilities.can_use_tool:
            return []
        return list(self._tools.values())

    def _build_system_prompt(self, tools: list[ITool]) -> str:
        prompt = self._config.system_prompt

        if self._config.role:
            prompt += f"\n\nYou are acting as: {self._config.role}"

        if tools:
            prompt += "\n\nYou have access to the following tools:\n"
            for tool in tools:
                prompt += f"- {tool.name}: {tool.description}\n"

        return prompt

    # Control

    async def stop(self) -> None:
        """Mark the live context completed; remaining tool calls are skipped."""
        context = self._context
        if context is None or context.state not in (ExecutionState.RUNNING, ExecutionState.PAUSED):
            return

        if context.state == ExecutionState.PAUSED:
            context.transition(ExecutionState.RUNNING)
        context.transition(ExecutionState.COMPLETED)
        self._stop_requested = True
        self._resumed.set()
        self._status.state = ExecutionState.IDLE
        logger.info("Agent %s execution %s stopped", self.id, context.id)

    async def pause(self) -> None:
        context = self._context
        if context is None or context.state != ExecutionState.RUNNING:
            return

        context.transition(ExecutionState.PAUSED)
        self._resumed.clear()
        self._status.state = ExecutionState.PAUSED
        await self._emit(EventType.EXECUTION_PAUSE, execution_id=context.id)

    async def resume(self) -> None:
        context = self._context
        if context is None or context.state != ExecutionState.PAUSED:
            return

        context.transition(ExecutionState.RUNNING)
        self._resumed.set()
        self._status.state = ExecutionState.RUNNING
        await self._emit(EventType.EXECUTION_RESUME, execution_id=context.id)

    def add_tool(self, tool: ITool) -> None:
        self._tools[tool.id] = tool

    def remove_tool(self, tool_id: str) -> None:
        self._tools.pop(tool_id, None)

    async def update_config(self, **changes: Any) -> AgentConfig:
        """Apply config changes; visible to the next execution."""
        old = self._config
        self._config = old.updated(**changes)
        await self._emit(EventType.CONFIG_UPDATE, changed=sorted(changes))
        return self._config

    def get_status(self) -> AgentStatus:
        """Snapshot of the agent status."""
        return dataclasses.replace(
            self._status, metrics=dataclasses.replace(self._status.metrics)
        )

    async def destroy(self) -> None:
        await self.stop()
        self._tools.clear()
        self._destroyed = True

    async def _emit(self, event_type: EventType, **payload: Any) -> None:
        if self._event_bus is None:
            return
        await self._event_bus.emit(event_type, source=self.id, agent_id=self.id, **payload)
