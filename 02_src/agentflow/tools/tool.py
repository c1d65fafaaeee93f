"""Tool contract, base implementations and the tool registry."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from ..errors import ErrorCode, ExecutionError, ToolExecutionError
from ..llm import ToolDescriptor
from ..logging_config import get_logger
from ..models import AgentExecutionContext
from .schema import ToolSchema, ValidationResult, to_json_schema, validate_tool_input

logger = get_logger(__name__)


class ITool(Protocol):
    """A named capability an agent may invoke."""

    id: str
    name: str
    description: str
    input_schema: ToolSchema

    async def execute(self, input: dict[str, Any], context: AgentExecutionContext) -> Any:
        """Run the tool. May raise."""
        ...


@dataclass
class ToolExecutionResult:
    success: bool
    data: Any = None
    error: ExecutionError | None = None
    execution_time: float = 0.0


def describe_tool(tool: ITool) -> ToolDescriptor:
    """Build the descriptor a model provider receives for a tool."""
    return ToolDescriptor(
        name=tool.id,
        description=tool.description,
        input_schema=to_json_schema(tool.input_schema),
    )


class BaseTool:
    """Base tool: validates input, then delegates to run()."""

    def __init__(
        self,
        id: str,
        name: str,
        description: str,
        input_schema: ToolSchema | None = None,
        tags: list[str] | None = None,
        category: str | None = None,
    ):
        self.id = id
        self.name = name
        self.description = description
        self.input_schema: ToolSchema = input_schema or {}
        self.tags = tags or []
        self.category = category

    def validate_input(self, input: Any) -> ValidationResult:
        return validate_tool_input(input, self.input_schema)

    async def execute(self, input: dict[str, Any], context: AgentExecutionContext) -> Any:
        """Validate input and run the tool with the sanitized arguments."""
        validation = self.validate_input(input)
        if not validation.valid:
            raise ToolExecutionError(
                f"Tool validation failed: {', '.join(validation.errors)}",
                details={"tool_id": self.id, "errors": validation.errors},
                recoverable=False,
            )

        try:
            return await self.run(validation.sanitized or {}, context)
        except ToolExecutionError:
            raise
        except Exception as e:
            raise ToolExecutionError(
                f"Tool {self.id} failed: {e}", details={"tool_id": self.id}
            ) from e

    async def run(self, input: dict[str, Any], context: AgentExecutionContext) -> Any:
        raise NotImplementedError


ToolFunction = Callable[..., Any]


class FunctionTool(BaseTool):
    """Wraps a plain or async callable taking (input, context)."""

    def __init__(self, id: str, func: ToolFunction, **kwargs: Any):
        kwargs.setdefault("name", id)
        kwargs.setdefault("description", (func.__doc__ or "").strip())
        super().__init__(id=id, **kwargs)
        self._func = func

    async def run(self, input: dict[str, Any], context: AgentExecutionContext) -> Any:
        result = self._func(input, context)
        if asyncio.iscoroutine(result):
            result = await result
        return result


class ToolRegistry:
    """Lookup table of tools by id."""

    def __init__(self) -> None:
        self._tools: dict[str, ITool] = {}

    def register(self, tool: ITool) -> None:
        if tool.id in self._tools:
            raise ValueError(f"Tool with ID '{tool.id}' already exists")
        self._tools[tool.id] = tool
        logger.debug("Tool registered: %s", tool.id)

    def unregister(self, tool_id: str) -> None:
        self._tools.pop(tool_id, None)

    def get(self, tool_id: str) -> ITool | None:
        return self._tools.get(tool_id)

    def find(
        self,
        tags: list[str] | None = None,
        category: str | None = None,
        name: str | None = None,
    ) -> list[ITool]:
        """Filter tools by any-of tags, exact category and name substring."""
        found = []
        for tool in self._tools.values():
            tool_tags = getattr(tool, "tags", None) or []
            if tags and not any(tag in tool_tags for tag in tags):
                continue
            if category and getattr(tool, "category", None) != category:
                continue
            if name and name.lower() not in tool.name.lower():
                continue
            found.append(tool)
        return found

    def validate_input(self, tool_id: str, input: Any) -> ValidationResult:
        tool = self._tools.get(tool_id)
        if tool is None:
            return ValidationResult(valid=False, errors=[f"Tool '{tool_id}' not found"])
        return validate_tool_input(input, tool.input_schema)

    async def execute(
        self, tool_id: str, input: dict[str, Any], context: AgentExecutionContext
    ) -> ToolExecutionResult:
        """Execute a tool by id. Failures are returned, not raised."""
        tool = self._tools.get(tool_id)
        if tool is None:
            return ToolExecutionResult(
                success=False,
                error=ExecutionError(
                    code=ErrorCode.TOOL_NOT_FOUND, message=f"Tool '{tool_id}' not found"
                ),
            )

        start = time.monotonic()
        try:
            data = await tool.execute(input, context)
        except ToolExecutionError as e:
            return ToolExecutionResult(
                success=False, error=e.to_error(), execution_time=time.monotonic() - start
            )
        except Exception as e:
            logger.warning("Tool %s raised: %s", tool_id, e)
            return ToolExecutionResult(
                success=False,
                error=ExecutionError(
                    code=ErrorCode.TOOL_EXECUTION_ERROR,
                    message=str(e),
                    details={"tool_id": tool_id},
                    recoverable=True,
                ),
                execution_time=time.monotonic() - start,
            )
        return ToolExecutionResult(
            success=True, data=data, execution_time=time.monotonic() - start
        )

    # Defined last: the method name shadows the builtin inside the class body
    def list(self) -> list[ITool]:
        return list(self._tools.values())
