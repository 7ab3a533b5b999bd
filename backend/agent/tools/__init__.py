"""Tool contract and registry."""

from .base import BaseTool, ToolDefinition, ToolParameter, ToolResult
from .registry import ToolRegistry

__all__ = [
    "BaseTool",
    "ToolDefinition",
    "ToolParameter",
    "ToolResult",
    "ToolRegistry",
]
