"""Tools module."""

from .builtin import CalculatorTool, HttpRequestTool, TextProcessorTool, builtin_tools
from .schema import (
    ArrayParam,
    BooleanParam,
    NumberParam,
    ObjectParam,
    ParamSchema,
    StringParam,
    ToolSchema,
    ValidationResult,
    to_json_schema,
    validate_tool_input,
)
from .tool import (
    BaseTool,
    FunctionTool,
    ITool,
    ToolExecutionResult,
    ToolRegistry,
    describe_tool,
)

__all__ = [
    "ArrayParam",
    "BaseTool",
    "BooleanParam",
    "CalculatorTool",
    "FunctionTool",
    "HttpRequestTool",
    "ITool",
    "NumberParam",
    "ObjectParam",
    "ParamSchema",
    "StringParam",
    "TextProcessorTool",
    "ToolExecutionResult",
    "ToolRegistry",
    "ToolSchema",
    "ValidationResult",
    "builtin_tools",
    "describe_tool",
    "to_json_schema",
    "validate_tool_input",
]
