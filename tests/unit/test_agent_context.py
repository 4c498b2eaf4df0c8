"""Tests for AgentContext construction and system prompt rendering."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from agentloop.agent.context import (
    DEFAULT_MAX_ITERATIONS,
    AgentContext,
    build_context,
    prompt_placeholders,
)
from agentloop.config.schema import AgentLoopConfig
from agentloop.core.errors import PromptTemplateError
from agentloop.prompts.template import InMemoryTemplateStore, PromptTemplate
from agentloop.tools.base import ToolContext


class TestAgentContext:
    def test_defaults(self, tool_context):
        ctx = AgentContext(system_prompt="sys", tool_context=tool_context)
        assert ctx.tool_registry is None
        assert ctx.max_iterations == DEFAULT_MAX_ITERATIONS == 10
        assert ctx.time_budget is None
        assert ctx.model is None

    @pytest.mark.parametrize(
        "field, value",
        [("max_iterations", 0), ("max_parallel_tools", 0), ("time_budget", 0.0)],
    )
    def test_rejects_invalid_bounds(self, tool_context, field, value):
        with pytest.raises(ValueError, match=field):
            AgentContext(system_prompt="sys", tool_context=tool_context, **{field: value})

    def test_from_config(self, tool_context, registry):
        config = AgentLoopConfig.model_validate(
            {
                "llm": {"max_tokens": 300, "temperature": 0.1, "enable_prompt_caching": False},
                "providers": {"anthropic": {"default_model": "claude-x"}},
                "agent": {
                    "max_iterations": 3,
                    "time_budget_seconds": 20,
                    "max_parallel_tools": 2,
                },
            }
        )
        ctx = AgentContext.from_config(
            config, system_prompt="sys", tool_context=tool_context, tool_registry=registry
        )
        assert ctx.tool_registry is registry
        assert ctx.max_tokens == 300
        assert ctx.temperature == 0.1
        assert ctx.enable_prompt_caching is False
        assert ctx.model == "claude-x"
        assert ctx.max_iterations == 3
        assert ctx.time_budget == 20
        assert ctx.max_parallel_tools == 2


class TestPromptPlaceholders:
    def test_values(self):
        ctx = ToolContext(user_id=1, guild_id=None, user_roles=frozenset({"b", "a"}))
        values = prompt_placeholders(ctx)
        assert values["user_id"] == 1
        assert values["guild_id"] is None
        assert values["channel_id"] is None
        assert values["user_roles"] == "a, b"
        assert values["current_date"] == datetime.now(UTC).strftime("%Y-%m-%d")


class TestBuildContext:
    async def test_renders_system_prompt(self, tool_context):
        prompts = PromptTemplate(
            InMemoryTemplateStore(
                {"agent_system.md": "User {{user_id}} in {{guild_id}} ({{tone}})"}
            )
        )
        ctx = await build_context(
            AgentLoopConfig(),
            prompts,
            tool_context=tool_context,
            extra_placeholders={"tone": "friendly"},
        )
        assert ctx.system_prompt == "User 123 in 7 (friendly)"
        assert ctx.tool_context is tool_context

    async def test_missing_template_raises(self, tool_context):
        prompts = PromptTemplate(InMemoryTemplateStore())
        with pytest.raises(PromptTemplateError):
            await build_context(AgentLoopConfig(), prompts, tool_context=tool_context)
