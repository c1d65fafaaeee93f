"""LLM module."""

from .llm_provider import (
    AnthropicProvider,
    ChatResponse,
    IModelProvider,
    ModelParams,
    ProviderFactory,
    ToolCall,
    ToolDescriptor,
)

__all__ = [
    "AnthropicProvider",
    "ChatResponse",
    "IModelProvider",
    "ModelParams",
    "ProviderFactory",
    "ToolCall",
    "ToolDescriptor",
]
