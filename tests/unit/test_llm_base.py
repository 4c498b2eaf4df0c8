"""Tests for the LLM wire contract DTOs."""

from __future__ import annotations

import pytest

from agentloop.llm.base import (
    LlmClient,
    LlmRequest,
    LlmResponse,
    Message,
    ModelInfo,
    Role,
    StopReason,
    TokenUsage,
)
from agentloop.tools.base import ToolCall, ToolResult
from tests.fixtures.providers import ScriptedLlmClient

# ─── TokenUsage ───────────────────────────────────────────────


class TestTokenUsage:
    def test_defaults_are_zero(self):
        usage = TokenUsage()
        assert usage.total_tokens == 0
        assert usage.estimated_cost is None

    def test_total_tokens_is_input_plus_output(self, make_usage):
        usage = make_usage(input_tokens=120, output_tokens=30, cache_read_tokens=500)
        assert usage.total_tokens == 150

    def test_add_sums_every_counter(self):
        a = TokenUsage(input_tokens=10, output_tokens=5, cache_read_tokens=2, cache_write_tokens=1)
        b = TokenUsage(input_tokens=20, output_tokens=7, cache_read_tokens=3, cache_write_tokens=4)
        total = a + b
        assert total.input_tokens == 30
        assert total.output_tokens == 12
        assert total.cache_read_tokens == 5
        assert total.cache_write_tokens == 5
        assert total.total_tokens == 42

    def test_add_cost_unknown_on_both_sides_stays_none(self):
        assert (TokenUsage(input_tokens=1) + TokenUsage(input_tokens=2)).estimated_cost is None

    def test_add_cost_known_on_one_side(self):
        total = TokenUsage(estimated_cost=0.25) + TokenUsage()
        assert total.estimated_cost == pytest.approx(0.25)

    def test_add_costs(self):
        total = TokenUsage(estimated_cost=0.25) + TokenUsage(estimated_cost=0.5)
        assert total.estimated_cost == pytest.approx(0.75)

    def test_add_rejects_other_types(self):
        with pytest.raises(TypeError):
            TokenUsage() + 5  # type: ignore[operator]

    def test_frozen(self):
        usage = TokenUsage()
        with pytest.raises(AttributeError):
            usage.input_tokens = 5  # type: ignore[misc]


# ─── ModelInfo ────────────────────────────────────────────────


class TestModelInfo:
    def _info(self) -> ModelInfo:
        return ModelInfo(
            provider_id="anthropic",
            model_id="claude-test",
            display_name="Claude Test",
            context_window=200_000,
            max_output_tokens=8192,
            input_cost_per_mtok=3.0,
            output_cost_per_mtok=15.0,
            cache_read_cost_per_mtok=0.3,
        )

    def test_model_ref(self):
        assert self._info().model_ref == "anthropic:claude-test"

    def test_estimate_cost(self):
        usage = TokenUsage(
            input_tokens=1_000_000, output_tokens=100_000, cache_read_tokens=1_000_000
        )
        # 3.0 + 1.5 + 0.3
        assert self._info().estimate_cost(usage) == pytest.approx(4.8)


# ─── Message ──────────────────────────────────────────────────


class TestMessage:
    def test_user(self):
        msg = Message.user("hello")
        assert msg.role is Role.USER
        assert msg.content == "hello"
        assert msg.tool_calls == ()

    def test_assistant_with_tool_calls(self):
        call = ToolCall(id="toolu_1", name="ping")
        msg = Message.assistant(None, [call])
        assert msg.role is Role.ASSISTANT
        assert msg.content == ""
        assert msg.tool_calls == (call,)

    def test_tool_results_message_is_user_role(self):
        result = ToolResult(tool_call_id="toolu_1", content="{}")
        msg = Message.tool_results_message([result])
        assert msg.role is Role.USER
        assert msg.tool_results == (result,)
        assert msg.content == ""


# ─── LlmRequest ───────────────────────────────────────────────


class TestLlmRequest:
    def test_defaults(self):
        req = LlmRequest(system_prompt="sys", messages=(Message.user("hi"),))
        assert req.tools is None
        assert req.model is None
        assert req.max_tokens == 1024
        assert req.temperature == 0.7
        assert req.enable_prompt_caching is True


# ─── LlmResponse ──────────────────────────────────────────────


class TestLlmResponse:
    def test_end_turn_without_tool_calls(self):
        resp = LlmResponse(success=True, stop_reason=StopReason.END_TURN, content="hi")
        assert resp.tool_calls == ()

    def test_tool_use_requires_tool_calls(self):
        with pytest.raises(ValueError, match="tool_calls must be non-empty"):
            LlmResponse(success=True, stop_reason=StopReason.TOOL_USE)

    def test_end_turn_rejects_tool_calls(self):
        with pytest.raises(ValueError):
            LlmResponse(
                success=True,
                stop_reason=StopReason.END_TURN,
                tool_calls=(ToolCall(id="t1", name="ping"),),
            )

    def test_failure_shape(self):
        resp = LlmResponse.failure("boom", usage=TokenUsage(input_tokens=3))
        assert resp.success is False
        assert resp.stop_reason is StopReason.ERROR
        assert resp.error_message == "boom"
        assert resp.content is None
        assert resp.usage.input_tokens == 3

    def test_failure_is_exempt_from_tool_call_check(self):
        resp = LlmResponse(success=False, stop_reason=StopReason.TOOL_USE)
        assert resp.success is False


# ─── Protocol ─────────────────────────────────────────────────


class TestLlmClientProtocol:
    def test_scripted_client_satisfies_protocol(self):
        assert isinstance(ScriptedLlmClient([]), LlmClient)

    def test_plain_object_does_not(self):
        assert not isinstance(object(), LlmClient)
