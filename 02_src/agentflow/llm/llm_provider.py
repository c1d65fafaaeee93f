"""Model provider contract and the Anthropic Claude implementation."""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import anthropic

from ..config import DEFAULT_MODEL
from ..errors import ProviderError
from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class ToolDescriptor:
    """Tool offered to the model: name, description and JSON schema."""

    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    id: str | None = None


@dataclass
class ChatResponse:
    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    usage: dict[str, int] | None = None


@dataclass
class ModelParams:
    model: str = DEFAULT_MODEL
    temperature: float | None = None
    max_tokens: int = 1024


class IModelProvider(Protocol):
    """Abstraction for chat-model access. Must be safe for concurrent calls."""

    async def chat(
        self,
        messages: list[dict],  # [{"role": "user", "content": "..."}]
        params: ModelParams,
        tools: list[ToolDescriptor] | None = None,
    ) -> ChatResponse:
        """Generate a response, possibly requesting tool calls."""
        ...


class AnthropicProvider:
    """Anthropic Claude API provider."""

    def __init__(self, api_key: str | None = None, model: str = DEFAULT_MODEL):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._model = model
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    async def chat(
        self,
        messages: list[dict],
        params: ModelParams,
        tools: list[ToolDescriptor] | None = None,
    ) -> ChatResponse:
        """Generate a response using the Claude messages API."""
        # Anthropic takes the system prompt separately from the turn list
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        turns = [m for m in messages if m["role"] != "system"]

        request: dict[str, Any] = {
            "model": params.model or self._model,
            "messages": turns,
            "max_tokens": params.max_tokens,
        }
        if system_parts:
            request["system"] = "\n\n".join(system_parts)
        if params.temperature is not None:
            request["temperature"] = params.temperature
        if tools:
            request["tools"] = [
                {
                    "name": t.name,
                    "description": t.description,
                    "input_schema": t.input_schema,
                }
                for t in tools
            ]

        try:
            response = await self._client.messages.create(**request)
        except Exception as e:
            # Re-raise for handling by the runtime
            raise ProviderError(f"LLM API error: {e}") from e

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in response.content:
            block_type = getattr(block, "type", "text")
            if block_type == "tool_use":
                tool_calls.append(
                    ToolCall(name=block.name, arguments=dict(block.input), id=block.id)
                )
            elif block_type == "text":
                text_parts.append(block.text)

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }

        return ChatResponse(text="".join(text_parts), tool_calls=tool_calls, usage=usage)


ProviderConstructor = Callable[..., IModelProvider]


class ProviderFactory:
    """Maps provider names to constructors."""

    def __init__(self, default_model: str = DEFAULT_MODEL):
        self._default_model = default_model
        self._constructors: dict[str, ProviderConstructor] = {
            "anthropic": AnthropicProvider,
        }
        self._instances: dict[str, IModelProvider] = {}

    def register(self, name: str, constructor: ProviderConstructor) -> None:
        """Register (or replace) a provider constructor."""
        self._constructors[name] = constructor
        self._instances.pop(name, None)

    def register_instance(self, name: str, provider: IModelProvider) -> None:
        """Register a ready-made provider under a name."""
        self._instances[name] = provider

    @property
    def names(self) -> list[str]:
        return sorted(set(self._constructors) | set(self._instances))

    def get(self, name: str, **kwargs: Any) -> IModelProvider:
        """Return the provider for a name, constructing it on first use."""
        if name in self._instances:
            return self._instances[name]

        constructor = self._constructors.get(name)
        if constructor is None:
            raise ValueError(f"Unknown model provider: {name}")

        kwargs.setdefault("model", self._default_model)
        provider = constructor(**kwargs)
        self._instances[name] = provider
        logger.info("Model provider created: %s", name)
        return provider
