"""Tests for AgentRuntime."""

import asyncio

import pytest

from agentflow.cancellation import CancellationToken
from agentflow.errors import ErrorCode, RuntimeDestroyedError
from agentflow.event_bus import EventType
from agentflow.llm import ChatResponse, ToolCall
from agentflow.models import AgentCapabilities, ExecutionState, StepType
from agentflow.tools import FunctionTool, StringParam


def upper_tool():
    async def upper(input, context):
        return input["text"].upper()

    return FunctionTool(
        "upper",
        upper,
        description="Uppercase text",
        input_schema={"text": StringParam(required=True)},
    )


class TestAgentExecute:
    """Tests for a plain execute() call."""

    @pytest.mark.asyncio
    async def test_execute_returns_model_text(self, make_agent, make_provider):
        """Test that a successful execution returns the model reply."""
        provider = make_provider(
            reply=ChatResponse(text="answer", usage={"input_tokens": 3, "output_tokens": 5})
        )
        agent = make_agent("a", provider=provider)

        result = await agent.execute("question", variables={"k": "v"})

        assert result.success is True
        assert result.output == "answer"
        assert result.error is None
        assert result.context.state == ExecutionState.COMPLETED
        assert result.context.variables == {"k": "v"}
        assert result.metadata.step_count == 1
        assert result.metadata.tools_used == 0
        assert result.metadata.token_usage == {"input_tokens": 3, "output_tokens": 5}
        assert result.context.history[0].type == StepType.REASONING

    @pytest.mark.asyncio
    async def test_system_prompt_and_params(self, make_agent, make_provider):
        """Test the messages and model params sent to the provider."""
        provider = make_provider()
        agent = make_agent("a", provider=provider, role="reviewer", system_prompt="Be brief.")

        await agent.execute("hi")

        messages, params, tools = provider.chat.await_args.args
        assert messages[0] == {
            "role": "system",
            "content": "Be brief.\n\nYou are acting as: reviewer",
        }
        assert messages[1] == {"role": "user", "content": "hi"}
        assert params.model == "test-model"
        assert params.max_tokens == 1024
        assert tools is None

    @pytest.mark.asyncio
    async def test_provider_failure(self, make_agent, make_provider, events):
        """Test that a provider exception becomes an EXECUTION_ERROR result."""
        agent = make_agent("a", provider=make_provider(error=RuntimeError("rate limited")))

        result = await agent.execute("hi")

        assert result.success is False
        assert result.error.code == ErrorCode.EXECUTION_ERROR
        assert "rate limited" in result.error.message
        assert result.context.state == ExecutionState.ERROR
        assert agent.get_status().state == ExecutionState.ERROR
        assert [e.type for e in events] == [
            EventType.EXECUTION_START,
            EventType.EXECUTION_STEP,
            EventType.EXECUTION_ERROR,
        ]

    @pytest.mark.asyncio
    async def test_metrics_are_recorded(self, make_agent, make_provider):
        """Test rolling metrics across executions."""
        provider = make_provider(error=RuntimeError("once"), failures=1)
        agent = make_agent("a", provider=provider)

        await agent.execute("one")
        await agent.execute("two")

        metrics = agent.get_status().metrics
        assert metrics.total_executions == 2
        assert metrics.successful_executions == 1
        assert metrics.failed_executions == 1
        assert metrics.last_execution_at is not None

    @pytest.mark.asyncio
    async def test_destroyed_agent_raises(self, make_agent):
        """Test that execute() after destroy() raises."""
        agent = make_agent("a")
        await agent.destroy()

        with pytest.raises(RuntimeDestroyedError):
            await agent.execute("hi")


class TestAgentTools:
    """Tests for tool calls requested by the model."""

    @pytest.mark.asyncio
    async def test_tool_calls_are_executed(self, make_agent, make_provider, events):
        """Test that requested tool calls run in order and are recorded."""
        provider = make_provider(
            reply=ChatResponse(
                text="done",
                tool_calls=[
                    ToolCall(name="upper", arguments={"text": "a"}),
                    ToolCall(name="upper", arguments={"text": "b"}),
                ],
            )
        )
        agent = make_agent(
            "a",
            provider=provider,
            tools=[upper_tool()],
            capabilities=AgentCapabilities(can_use_tool=True),
        )

        result = await agent.execute("go")

        assert result.success is True
        assert [s.output for s in result.context.tool_calls] == ["A", "B"]
        assert result.metadata.tools_used == 2
        tool_events = [e.type for e in events if e.type.value.startswith("tool:")]
        assert tool_events == [
            EventType.TOOL_CALL,
            EventType.TOOL_RESULT,
            EventType.TOOL_CALL,
            EventType.TOOL_RESULT,
        ]
        _, _, offered = provider.chat.await_args.args
        assert [t.name for t in offered] == ["upper"]
        assert "- upper: Uppercase text" in provider.chat.await_args.args[0][0]["content"]

    @pytest.mark.asyncio
    async def test_tools_not_offered_without_capability(self, make_agent, make_provider):
        """Test that tool calls are ignored when can_use_tool is off."""
        provider = make_provider(
            reply=ChatResponse(text="ok", tool_calls=[ToolCall(name="upper", arguments={})])
        )
        agent = make_agent("a", provider=provider, tools=[upper_tool()])

        result = await agent.execute("go")

        assert result.success is True
        assert result.context.tool_calls == []

    @pytest.mark.asyncio
    async def test_unknown_tool(self, make_agent, make_provider):
        """Test that a call to an unattached tool fails with TOOL_NOT_FOUND."""
        provider = make_provider(
            reply=ChatResponse(text="", tool_calls=[ToolCall(name="search", arguments={})])
        )
        agent = make_agent(
            "a",
            provider=provider,
            tools=[upper_tool()],
            capabilities=AgentCapabilities(can_use_tool=True),
        )

        result = await agent.execute("go")

        assert result.success is False
        assert result.error.code == ErrorCode.TOOL_NOT_FOUND

    @pytest.mark.asyncio
    async def test_tool_failure(self, make_agent, make_provider, events):
        """Test that invalid tool input fails with TOOL_EXECUTION_ERROR."""
        provider = make_provider(
            reply=ChatResponse(text="", tool_calls=[ToolCall(name="upper", arguments={})])
        )
        agent = make_agent(
            "a",
            provider=provider,
            tools=[upper_tool()],
            capabilities=AgentCapabilities(can_use_tool=True),
        )

        result = await agent.execute("go")

        assert result.success is False
        assert result.error.code == ErrorCode.TOOL_EXECUTION_ERROR
        assert result.error.message.startswith("Tool upper execution failed")
        assert result.context.tool_calls[0].failed
        assert any(e.type == EventType.TOOL_ERROR for e in events)

    @pytest.mark.asyncio
    async def test_add_and_remove_tool(self, make_agent):
        """Test attaching and detaching tools."""
        agent = make_agent("a")
        agent.add_tool(upper_tool())
        assert [t.id for t in agent.tools] == ["upper"]

        agent.remove_tool("upper")
        assert agent.tools == []


class TestAgentDeadlines:
    """Tests for cancellation and deadlines seen by the runtime."""

    @pytest.mark.asyncio
    async def test_max_execution_time(self, make_agent, make_provider):
        """Test that the agent's own execution limit yields TIMEOUT."""
        agent = make_agent(
            "a",
            provider=make_provider(delay=0.2),
            capabilities=AgentCapabilities(max_execution_time=0.05),
        )

        result = await agent.execute("slow")

        assert result.success is False
        assert result.error.code == ErrorCode.TIMEOUT

    @pytest.mark.asyncio
    async def test_cancelled_token(self, make_agent):
        """Test that a cancelled token yields CANCELLED."""
        token = CancellationToken()
        token.cancel("stop now")
        agent = make_agent("a")

        result = await agent.execute("x", token=token)

        assert result.success is False
        assert result.error.code == ErrorCode.CANCELLED
        assert result.error.message == "stop now"


class TestAgentControl:
    """Tests for stop/pause/resume and configuration updates."""

    @pytest.mark.asyncio
    async def test_stop_skips_remaining_tools(self, make_agent, make_provider):
        """Test that stop() during execution skips pending tool calls."""
        agent = None

        async def stopping(input, context):
            await agent.stop()
            return "first"

        provider = make_provider(
            reply=ChatResponse(
                text="done",
                tool_calls=[
                    ToolCall(name="stopper", arguments={}),
                    ToolCall(name="stopper", arguments={}),
                ],
            )
        )
        agent = make_agent(
            "a",
            provider=provider,
            tools=[FunctionTool("stopper", stopping)],
            capabilities=AgentCapabilities(can_use_tool=True),
        )

        result = await agent.execute("go")

        assert result.success is True
        assert len(result.context.tool_calls) == 1
        assert result.context.state == ExecutionState.COMPLETED

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, make_agent, make_provider, events):
        """Test that a paused execution waits until resume()."""
        agent = make_agent("a", provider=make_provider(delay=0.05))

        task = asyncio.create_task(agent.execute("x"))
        await asyncio.sleep(0.01)
        await agent.pause()
        assert agent.get_status().state == ExecutionState.PAUSED

        await asyncio.sleep(0.1)
        assert not task.done()

        await agent.resume()
        result = await task

        assert result.success is True
        types = [e.type for e in events]
        assert EventType.EXECUTION_PAUSE in types
        assert EventType.EXECUTION_RESUME in types

    @pytest.mark.asyncio
    async def test_update_config(self, make_agent, events):
        """Test that update_config bumps updated_at and emits config:update."""
        agent = make_agent("a")
        before = agent.config.updated_at

        config = await agent.update_config(role="editor", tools=["x"])

        assert config.role == "editor"
        assert config.tools == ("x",)
        assert config.updated_at >= before
        assert agent.config is config
        update = [e for e in events if e.type == EventType.CONFIG_UPDATE][0]
        assert update.payload["changed"] == ["role", "tools"]

    @pytest.mark.asyncio
    async def test_update_config_rejects_new_id(self, make_agent):
        agent = make_agent("a")

        with pytest.raises(ValueError):
            await agent.update_config(id="b")

    @pytest.mark.asyncio
    async def test_status_is_a_snapshot(self, make_agent):
        """Test that get_status() returns a copy."""
        agent = make_agent("a")
        status = agent.get_status()
        status.metrics.total_executions = 99

        assert agent.get_status().metrics.total_executions == 0
