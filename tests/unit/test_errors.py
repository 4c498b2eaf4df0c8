"""Tests for the agentloop exception hierarchy."""

from __future__ import annotations

import pytest

from agentloop.core.errors import (
    AgentLoopError,
    ConfigError,
    ModelNotFoundError,
    PromptTemplateError,
    ProviderAuthError,
    ProviderError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ToolError,
    ToolProviderNotFoundError,
)

# ─── Hierarchy ────────────────────────────────────────────────


class TestHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [
            ProviderAuthError,
            ProviderTimeoutError,
            ProviderOverloadedError,
            ModelNotFoundError,
        ],
    )
    def test_provider_subclasses(self, cls):
        err = cls("anthropic", "boom")
        assert isinstance(err, ProviderError)
        assert isinstance(err, AgentLoopError)

    def test_tool_provider_not_found_is_tool_error(self):
        err = ToolProviderNotFoundError("weather")
        assert isinstance(err, ToolError)
        assert isinstance(err, AgentLoopError)

    def test_template_and_config_errors(self):
        assert issubclass(PromptTemplateError, AgentLoopError)
        assert issubclass(ConfigError, AgentLoopError)


# ─── Messages ─────────────────────────────────────────────────


class TestMessages:
    def test_provider_error_prefixes_provider_id(self):
        err = ProviderError("anthropic", "something broke")
        assert str(err) == "[anthropic] something broke"
        assert err.provider_id == "anthropic"

    def test_rate_limit_without_retry_after(self):
        err = ProviderRateLimitError("anthropic")
        assert err.retry_after is None
        assert str(err) == "[anthropic] Rate limited"

    def test_rate_limit_with_retry_after(self):
        err = ProviderRateLimitError("anthropic", retry_after=12.5)
        assert err.retry_after == 12.5
        assert "retry after 12.5s" in str(err)

    def test_tool_provider_not_found(self):
        err = ToolProviderNotFoundError("weather")
        assert err.provider_name == "weather"
        assert str(err) == "Tool provider not registered: weather"
