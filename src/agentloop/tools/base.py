"""Tool protocol and data types.

Defines the ``ToolProvider`` protocol that every capability provider must
satisfy, plus the data classes exchanged between the model, the registry
and the providers: tool definitions, calls, results and the per-call
permission context.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Schema definition for a tool, suitable for passing to providers.

    ``input_schema`` is a JSON Schema document; nothing outside the owning
    provider interprets it.
    """

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by a model."""

    id: str  # vendor-assigned, unique within one response
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Result handed back to the model for one :class:`ToolCall`."""

    tool_call_id: str
    content: str  # JSON text
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Who is asking, and where. Passed to every tool execution."""

    user_id: int
    guild_id: int | None = None
    channel_id: int | None = None
    user_roles: frozenset[str] = frozenset()

    def has_role(self, role: str) -> bool:
        """Case-insensitive role membership check."""
        wanted = role.casefold()
        return any(r.casefold() == wanted for r in self.user_roles)


@dataclass(frozen=True, slots=True)
class ToolExecutionResult:
    """Outcome of a provider executing one tool."""

    success: bool
    output: Any = None
    error_message: str | None = None

    @classmethod
    def ok(cls, output: Any = None) -> ToolExecutionResult:
        return cls(success=True, output=output)

    @classmethod
    def error(cls, message: str) -> ToolExecutionResult:
        return cls(success=False, error_message=message)

    def to_content(self) -> str:
        """Render the JSON text the model sees for this result."""
        if not self.success:
            return json.dumps({"error": self.error_message or "Unknown error"})
        if self.output is None:
            return json.dumps({"success": True})
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, ensure_ascii=False, default=str)


@runtime_checkable
class ToolProvider(Protocol):
    """Protocol that all tool providers must satisfy.

    A provider groups related tools, exposes their schemas and executes
    them. Permission checks against :class:`ToolContext` happen inside
    the provider. An unknown tool name yields a failed
    :class:`ToolExecutionResult` rather than an exception.
    """

    @property
    def name(self) -> str:
        """Unique name for this provider."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of the tool group."""
        ...

    def get_tools(self) -> list[ToolDefinition]:
        """Return the definitions of every tool this provider serves."""
        ...

    async def execute_tool(
        self,
        name: str,
        input: dict[str, Any],
        context: ToolContext,
    ) -> ToolExecutionResult:
        """Execute tool ``name`` with the model-supplied ``input``."""
        ...
