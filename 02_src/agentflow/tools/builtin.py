"""Built-in tools registered by the Application."""

import ast
import math
import operator
from typing import Any

import httpx

from ..models import AgentExecutionContext
from .schema import NumberParam, ObjectParam, StringParam
from .tool import BaseTool

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
MAX_EXPONENT = 1000


def _evaluate(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _evaluate(node.left), _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError(f"Exponent too large: {right}")
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


class CalculatorTool(BaseTool):
    """Arithmetic on + - * / // % ** and parentheses."""

    def __init__(self) -> None:
        super().__init__(
            id="calculator",
            name="Calculator",
            description="Perform basic mathematical calculations",
            category="math",
            tags=["math", "calculation", "arithmetic"],
            input_schema={
                "expression": StringParam(
                    description='Mathematical expression to evaluate (e.g. "2 + 3 * 4")',
                    required=True,
                    pattern=r"^[0-9+\-*/%().\s]+$",
                ),
            },
        )

    async def run(self, input: dict[str, Any], context: AgentExecutionContext) -> Any:
        expression = input["expression"]
        try:
            result = _evaluate(ast.parse(expression, mode="eval"))
        except (SyntaxError, ZeroDivisionError, ValueError, OverflowError) as e:
            raise ValueError(f"Calculation failed: {e}") from e

        if not isinstance(result, (int, float)) or not math.isfinite(result):
            raise ValueError("Invalid mathematical expression or result")
        return {"result": result, "expression": expression}


class TextProcessorTool(BaseTool):
    OPERATIONS = ("uppercase", "lowercase", "word_count", "char_count", "reverse", "trim", "title_case")

    def __init__(self) -> None:
        super().__init__(
            id="text_processor",
            name="Text Processor",
            description="Process text: uppercase, lowercase, word count, etc.",
            category="text",
            tags=["text", "string", "processing"],
            input_schema={
                "text": StringParam(description="Text to process", required=True, max_length=10000),
                "operation": StringParam(
                    description="Operation to perform", required=True, enum=self.OPERATIONS
                ),
            },
        )

    async def run(self, input: dict[str, Any], context: AgentExecutionContext) -> Any:
        text, operation = input["text"], input["operation"]
        metadata: dict[str, Any] = {}

        if operation == "uppercase":
            result: Any = text.upper()
        elif operation == "lowercase":
            result = text.lower()
        elif operation == "word_count":
            words = text.split()
            result = len(words)
            metadata["words"] = words
        elif operation == "char_count":
            result = len(text)
            metadata["without_spaces"] = len("".join(text.split()))
        elif operation == "reverse":
            result = text[::-1]
        elif operation == "trim":
            result = text.strip()
            metadata["original_length"] = len(text)
            metadata["trimmed_length"] = len(result)
        else:
            result = text.title()

        return {"result": result, "operation": operation, "metadata": metadata}


class HttpRequestTool(BaseTool):
    """HTTP request through httpx. Timeout is in seconds."""

    METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS")

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        super().__init__(
            id="http_request",
            name="HTTP Request",
            description="Make HTTP requests to web APIs",
            category="network",
            tags=["http", "api", "web", "request"],
            input_schema={
                "url": StringParam(description="Request URL", required=True, pattern=r"^https?://.+"),
                "method": StringParam(description="HTTP method", default="GET", enum=self.METHODS),
                "headers": ObjectParam(description="HTTP headers"),
                "body": StringParam(description="Request body (POST, PUT, PATCH)"),
                "timeout": NumberParam(
                    description="Request timeout in seconds", default=10.0, minimum=1.0, maximum=60.0
                ),
            },
        )
        self._transport = transport

    async def run(self, input: dict[str, Any], context: AgentExecutionContext) -> Any:
        method = input.get("method", "GET")
        body = input.get("body") if method in ("POST", "PUT", "PATCH") else None
        headers = {"User-Agent": "agentflow/0.1", **input.get("headers", {})}

        async with httpx.AsyncClient(
            transport=self._transport, timeout=input.get("timeout", 10.0)
        ) as client:
            try:
                response = await client.request(method, input["url"], headers=headers, content=body)
            except httpx.TimeoutException as e:
                raise RuntimeError(f"Request timeout after {input.get('timeout', 10.0)}s") from e
            except httpx.HTTPError as e:
                raise RuntimeError(f"HTTP request failed: {e}") from e

        try:
            data: Any = response.json()
        except ValueError:
            data = response.text

        return {
            "status": response.status_code,
            "reason": response.reason_phrase,
            "headers": dict(response.headers),
            "data": data,
            "url": str(response.url),
        }


def builtin_tools() -> list[BaseTool]:
    return [CalculatorTool(), TextProcessorTool(), HttpRequestTool()]
