"""Tool framework for the agent loop.

Provides the tool provider protocol, the shared registry that routes
tool calls to providers, and a built-in documentation provider.
"""

from agentloop.tools.base import (
    ToolCall,
    ToolContext,
    ToolDefinition,
    ToolExecutionResult,
    ToolProvider,
    ToolResult,
)
from agentloop.tools.registry import ToolRegistry

__all__ = [
    "ToolCall",
    "ToolContext",
    "ToolDefinition",
    "ToolExecutionResult",
    "ToolProvider",
    "ToolRegistry",
    "ToolResult",
]
