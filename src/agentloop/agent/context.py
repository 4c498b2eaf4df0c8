"""Per-turn agent context and its construction from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from agentloop.tools.base import ToolContext

if TYPE_CHECKING:
    from agentloop.config.schema import AgentLoopConfig
    from agentloop.prompts.template import PromptTemplate
    from agentloop.tools.registry import ToolRegistry

DEFAULT_MAX_ITERATIONS = 10


@dataclass(frozen=True, slots=True)
class AgentContext:
    """Everything one :meth:`AgentRunner.run` needs besides the user message.

    Built by the caller for each turn and never mutated during the run.
    """

    system_prompt: str
    tool_context: ToolContext
    tool_registry: ToolRegistry | None = None
    max_tokens: int = 1024
    temperature: float = 0.7
    model: str | None = None
    enable_prompt_caching: bool = True
    max_iterations: int = DEFAULT_MAX_ITERATIONS  # tool-use rounds per run
    time_budget: float | None = None  # seconds for the whole run
    max_parallel_tools: int = 4

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            msg = f"max_iterations must be >= 1, got {self.max_iterations}"
            raise ValueError(msg)
        if self.max_parallel_tools < 1:
            msg = f"max_parallel_tools must be >= 1, got {self.max_parallel_tools}"
            raise ValueError(msg)
        if self.time_budget is not None and self.time_budget <= 0:
            msg = f"time_budget must be positive, got {self.time_budget}"
            raise ValueError(msg)

    @classmethod
    def from_config(
        cls,
        config: AgentLoopConfig,
        *,
        system_prompt: str,
        tool_context: ToolContext,
        tool_registry: ToolRegistry | None = None,
    ) -> AgentContext:
        """Fill generation parameters and loop bounds from ``config``."""
        provider = config.providers.get(config.llm.provider)
        return cls(
            system_prompt=system_prompt,
            tool_context=tool_context,
            tool_registry=tool_registry,
            max_tokens=config.llm.max_tokens,
            temperature=config.llm.temperature,
            model=provider.default_model if provider else None,
            enable_prompt_caching=config.llm.enable_prompt_caching,
            max_iterations=config.agent.max_iterations,
            time_budget=config.agent.time_budget_seconds,
            max_parallel_tools=config.agent.max_parallel_tools,
        )


def prompt_placeholders(tool_context: ToolContext) -> dict[str, object | None]:
    """Standard placeholders available to every system prompt template."""
    return {
        "user_id": tool_context.user_id,
        "guild_id": tool_context.guild_id,
        "channel_id": tool_context.channel_id,
        "user_roles": ", ".join(sorted(tool_context.user_roles)),
        "current_date": datetime.now(UTC).strftime("%Y-%m-%d"),
    }


async def build_context(
    config: AgentLoopConfig,
    prompts: PromptTemplate,
    *,
    tool_context: ToolContext,
    tool_registry: ToolRegistry | None = None,
    extra_placeholders: dict[str, object | None] | None = None,
) -> AgentContext:
    """Render the configured system prompt and build an :class:`AgentContext`."""
    placeholders = prompt_placeholders(tool_context)
    if extra_placeholders:
        placeholders.update(extra_placeholders)
    system_prompt = await prompts.render(config.agent.system_prompt_path, placeholders)
    return AgentContext.from_config(
        config,
        system_prompt=system_prompt,
        tool_context=tool_context,
        tool_registry=tool_registry,
    )
