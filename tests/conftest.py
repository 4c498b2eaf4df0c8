"""Shared test fixtures for agentloop."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from agentloop.agent.context import AgentContext
from agentloop.llm.base import TokenUsage
from agentloop.tools.base import ToolContext
from agentloop.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from tests.fixtures.providers import RolesToolProvider as RolesToolProviderType


@pytest.fixture
def tool_context() -> ToolContext:
    return ToolContext(
        user_id=123,
        guild_id=7,
        channel_id=99,
        user_roles=frozenset({"Member"}),
    )


@pytest.fixture
def roles_provider() -> RolesToolProviderType:
    from tests.fixtures.providers import RolesToolProvider

    return RolesToolProvider()


@pytest.fixture
def registry(roles_provider: RolesToolProviderType) -> ToolRegistry:
    """Registry with the roles provider registered and enabled."""
    reg = ToolRegistry()
    reg.register_provider(roles_provider)
    return reg


@pytest.fixture
def make_context(tool_context: ToolContext, registry: ToolRegistry) -> Any:
    """Factory fixture for AgentContext with sensible defaults."""

    def _make(**overrides: Any) -> AgentContext:
        defaults: dict[str, Any] = {
            "system_prompt": "You are a helpful assistant.",
            "tool_context": tool_context,
            "tool_registry": registry,
            "max_tokens": 1024,
            "temperature": 0.7,
            "max_iterations": 5,
        }
        defaults.update(overrides)
        return AgentContext(**defaults)

    return _make


@pytest.fixture
def make_usage() -> Any:
    """Factory fixture for TokenUsage with sensible defaults."""

    def _make(**overrides: Any) -> TokenUsage:
        defaults: dict[str, Any] = {"input_tokens": 100, "output_tokens": 50}
        defaults.update(overrides)
        return TokenUsage(**defaults)

    return _make
