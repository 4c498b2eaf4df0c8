"""LLM client interface and the vendor-agnostic wire contract.

All LLM clients implement the ``LlmClient`` protocol. Requests and
responses are immutable (frozen dataclasses with slots); a new request is
built for every model call from the live conversation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from agentloop.tools.base import ToolCall, ToolDefinition, ToolResult


class Role(enum.StrEnum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class StopReason(enum.StrEnum):
    """Why the model stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ModelInfo:
    """Static metadata and pricing for a model."""

    provider_id: str  # e.g. "anthropic"
    model_id: str  # e.g. "claude-sonnet-4-5-20250929"
    display_name: str
    context_window: int
    max_output_tokens: int
    input_cost_per_mtok: float  # USD per million input tokens
    output_cost_per_mtok: float
    cache_read_cost_per_mtok: float = 0.0
    cache_write_cost_per_mtok: float = 0.0

    @property
    def model_ref(self) -> str:
        """Canonical reference: ``provider_id:model_id``."""
        return f"{self.provider_id}:{self.model_id}"

    def estimate_cost(self, usage: TokenUsage) -> float:
        """USD cost of ``usage`` at this model's prices."""
        return (
            usage.input_tokens * self.input_cost_per_mtok
            + usage.output_tokens * self.output_cost_per_mtok
            + usage.cache_read_tokens * self.cache_read_cost_per_mtok
            + usage.cache_write_tokens * self.cache_write_cost_per_mtok
        ) / 1_000_000


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts from one model call, or summed over many."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0
    cache_write_tokens: int = 0
    estimated_cost: float | None = None  # USD; None when pricing is unknown

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens

    def __add__(self, other: TokenUsage) -> TokenUsage:
        if not isinstance(other, TokenUsage):
            return NotImplemented
        if self.estimated_cost is None and other.estimated_cost is None:
            cost = None
        else:
            cost = (self.estimated_cost or 0.0) + (other.estimated_cost or 0.0)
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_read_tokens=self.cache_read_tokens + other.cache_read_tokens,
            cache_write_tokens=self.cache_write_tokens + other.cache_write_tokens,
            estimated_cost=cost,
        )


@dataclass(frozen=True, slots=True)
class Message:
    """A single conversation message.

    Assistant messages may carry ``tool_calls``; the user message that
    follows them carries the matching ``tool_results``.
    """

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str | None = None,
        tool_calls: Iterable[ToolCall] = (),
    ) -> Message:
        return cls(
            role=Role.ASSISTANT,
            content=content or "",
            tool_calls=tuple(tool_calls),
        )

    @classmethod
    def tool_results_message(cls, results: Iterable[ToolResult]) -> Message:
        return cls(role=Role.USER, tool_results=tuple(results))


@dataclass(frozen=True, slots=True)
class LlmRequest:
    """Everything one model call needs. Never mutated after construction."""

    system_prompt: str
    messages: tuple[Message, ...]
    tools: tuple[ToolDefinition, ...] | None = None
    model: str | None = None  # None = client default
    max_tokens: int = 1024
    temperature: float = 0.7
    enable_prompt_caching: bool = True


@dataclass(frozen=True, slots=True)
class LlmResponse:
    """Vendor-agnostic result of one model call.

    Invariant: for a successful response, ``tool_calls`` is non-empty
    iff ``stop_reason`` is ``TOOL_USE``.
    """

    success: bool
    stop_reason: StopReason
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    usage: TokenUsage = field(default_factory=TokenUsage)
    error_message: str | None = None

    def __post_init__(self) -> None:
        if self.success and bool(self.tool_calls) != (
            self.stop_reason is StopReason.TOOL_USE
        ):
            msg = (
                f"tool_calls must be non-empty iff stop_reason is tool_use "
                f"(stop_reason={self.stop_reason}, tool_calls={len(self.tool_calls)})"
            )
            raise ValueError(msg)

    @classmethod
    def failure(
        cls,
        message: str,
        usage: TokenUsage | None = None,
    ) -> LlmResponse:
        """Build the ``success=False, stop_reason=ERROR`` shape."""
        return cls(
            success=False,
            stop_reason=StopReason.ERROR,
            usage=usage or TokenUsage(),
            error_message=message,
        )


@runtime_checkable
class LlmClient(Protocol):
    """Protocol that all LLM clients must satisfy.

    A client wraps exactly one vendor. ``complete`` never raises for
    vendor or transport failures: those come back as
    :meth:`LlmResponse.failure`. Task cancellation still propagates.
    """

    @property
    def provider_name(self) -> str:
        """Vendor name, e.g. ``"anthropic"``."""
        ...

    @property
    def supports_tool_use(self) -> bool: ...

    @property
    def supports_prompt_caching(self) -> bool: ...

    async def complete(self, request: LlmRequest) -> LlmResponse:
        """Run one model call.

        Retries, timeouts and error mapping are internal to the client.
        """
        ...
