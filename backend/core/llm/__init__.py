"""LLM abstraction used by the execution engines."""

from .base import BaseLLM, LLMResponse
from .factory import create_llm, list_providers

__all__ = [
    "BaseLLM",
    "LLMResponse",
    "create_llm",
    "list_providers",
]
