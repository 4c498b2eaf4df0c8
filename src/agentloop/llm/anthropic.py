"""Anthropic (Claude) LLM client.

The module-level mapper functions translate between the common
:mod:`agentloop.llm.base` DTOs and the Messages API wire shapes. SDK
types never leave this module.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING, Any

import anthropic

from agentloop.core.errors import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from agentloop.core.retry import RetryConfig, retry_with_backoff
from agentloop.llm.base import (
    LlmResponse,
    ModelInfo,
    Role,
    StopReason,
    TokenUsage,
)
from agentloop.tools.base import ToolCall

if TYPE_CHECKING:
    from collections.abc import Iterable

    from agentloop.llm.base import LlmRequest, Message
    from agentloop.tools.base import ToolDefinition

logger = logging.getLogger(__name__)

PROVIDER_ID = "anthropic"
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

# Known Claude models with pricing (USD per million tokens).
_KNOWN_MODELS: list[dict[str, Any]] = [
    {
        "model_id": "claude-opus-4-1-20250805",
        "display_name": "Claude Opus 4.1",
        "context_window": 200_000,
        "max_output_tokens": 32_000,
        "input_cost_per_mtok": 15.0,
        "output_cost_per_mtok": 75.0,
        "cache_read_cost_per_mtok": 1.5,
        "cache_write_cost_per_mtok": 18.75,
    },
    {
        "model_id": "claude-sonnet-4-5-20250929",
        "display_name": "Claude Sonnet 4.5",
        "context_window": 200_000,
        "max_output_tokens": 64_000,
        "input_cost_per_mtok": 3.0,
        "output_cost_per_mtok": 15.0,
        "cache_read_cost_per_mtok": 0.3,
        "cache_write_cost_per_mtok": 3.75,
    },
    {
        "model_id": "claude-haiku-4-5-20251001",
        "display_name": "Claude Haiku 4.5",
        "context_window": 200_000,
        "max_output_tokens": 64_000,
        "input_cost_per_mtok": 1.0,
        "output_cost_per_mtok": 5.0,
        "cache_read_cost_per_mtok": 0.1,
        "cache_write_cost_per_mtok": 1.25,
    },
]

_STOP_REASONS: dict[str, StopReason] = {
    "end_turn": StopReason.END_TURN,
    "stop_sequence": StopReason.END_TURN,
    "tool_use": StopReason.TOOL_USE,
    "max_tokens": StopReason.MAX_TOKENS,
}


def resolve_model_info(model_id: str) -> ModelInfo | None:
    """Look up pricing metadata for a known model, or None."""
    for m in _KNOWN_MODELS:
        if m["model_id"] == model_id:
            return ModelInfo(provider_id=PROVIDER_ID, **m)
    return None


def _map_error(e: anthropic.APIError) -> ProviderError:
    """Map Anthropic SDK errors to the agentloop error hierarchy."""
    if isinstance(e, anthropic.AuthenticationError | anthropic.PermissionDeniedError):
        return ProviderAuthError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.RateLimitError):
        retry_after = None
        if getattr(e, "response", None) is not None:
            raw = e.response.headers.get("retry-after")
            if raw is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(raw)
        return ProviderRateLimitError(PROVIDER_ID, retry_after=retry_after)
    if isinstance(e, anthropic.APIConnectionError):
        # APITimeoutError is a subclass; both are transient transport failures
        return ProviderTimeoutError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.NotFoundError):
        return ModelNotFoundError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.APIStatusError) and e.status_code >= 500:
        # 500/503/504 and 529 (overloaded) each have their own SDK class
        return ProviderOverloadedError(PROVIDER_ID, str(e))
    return ProviderError(PROVIDER_ID, str(e))


# ─── Request mapping ──────────────────────────────────────────


def _user_blocks(msg: Message) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    if msg.content:
        blocks.append({"type": "text", "text": msg.content})
    for result in msg.tool_results:
        blocks.append(
            {
                "type": "tool_result",
                "tool_use_id": result.tool_call_id,
                "content": result.content,
                "is_error": result.is_error,
            }
        )
    return blocks


def _assistant_blocks(msg: Message) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    if msg.content:
        blocks.append({"type": "text", "text": msg.content})
    for call in msg.tool_calls:
        blocks.append(
            {
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": dict(call.input),
            }
        )
    return blocks


def to_anthropic_messages(messages: Iterable[Message]) -> list[dict[str, Any]]:
    """Convert conversation messages to Messages API params.

    Raises:
        ValueError: If a system-role message appears in the list. The
            system prompt travels in ``LlmRequest.system_prompt``.
    """
    api_messages: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role is Role.USER:
            api_messages.append({"role": "user", "content": _user_blocks(msg)})
        elif msg.role is Role.ASSISTANT:
            api_messages.append(
                {"role": "assistant", "content": _assistant_blocks(msg)}
            )
        else:
            msg_text = (
                "System role messages must be set via LlmRequest.system_prompt, "
                "not in the messages list"
            )
            raise ValueError(msg_text)
    return api_messages


def to_anthropic_tools(tools: Iterable[ToolDefinition]) -> list[dict[str, Any]]:
    """Convert tool definitions to Messages API tool params."""
    api_tools: list[dict[str, Any]] = []
    for tool in tools:
        schema = dict(tool.input_schema)
        schema.setdefault("type", "object")
        api_tools.append(
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": schema,
            }
        )
    return api_tools


def build_system(system_prompt: str, *, cache: bool) -> list[dict[str, Any]]:
    """System prompt as text blocks, marked ephemeral-cacheable if asked."""
    block: dict[str, Any] = {"type": "text", "text": system_prompt}
    if cache:
        block["cache_control"] = {"type": "ephemeral"}
    return [block]


# ─── Response mapping ─────────────────────────────────────────


def _map_usage(raw: Any, model_info: ModelInfo | None) -> TokenUsage:
    usage = TokenUsage(
        input_tokens=raw.input_tokens or 0,
        output_tokens=raw.output_tokens or 0,
        cache_read_tokens=getattr(raw, "cache_read_input_tokens", 0) or 0,
        cache_write_tokens=getattr(raw, "cache_creation_input_tokens", 0) or 0,
    )
    if model_info is None:
        return usage
    return TokenUsage(
        input_tokens=usage.input_tokens,
        output_tokens=usage.output_tokens,
        cache_read_tokens=usage.cache_read_tokens,
        cache_write_tokens=usage.cache_write_tokens,
        estimated_cost=model_info.estimate_cost(usage),
    )


def to_llm_response(message: Any, model_info: ModelInfo | None = None) -> LlmResponse:
    """Convert an Anthropic ``Message`` into an :class:`LlmResponse`."""
    stop_reason = _STOP_REASONS.get(message.stop_reason or "", StopReason.ERROR)
    usage = _map_usage(message.usage, model_info)

    texts: list[str] = []
    tool_calls: list[ToolCall] = []
    for block in message.content or []:
        block_type = getattr(block, "type", None)
        if block_type == "text":
            texts.append(block.text)
        elif block_type == "tool_use":
            tool_calls.append(
                ToolCall(id=block.id, name=block.name, input=dict(block.input or {}))
            )

    content = "\n".join(texts) if texts else None

    if stop_reason is StopReason.ERROR:
        return LlmResponse.failure(
            f"[{PROVIDER_ID}] Unexpected stop reason: {message.stop_reason}",
            usage=usage,
        )
    if stop_reason is StopReason.TOOL_USE and not tool_calls:
        return LlmResponse.failure(
            f"[{PROVIDER_ID}] Model indicated tool use but provided no tool calls",
            usage=usage,
        )
    if stop_reason is not StopReason.TOOL_USE and tool_calls:
        # A max_tokens cut can leave a half-written tool_use block behind
        logger.debug(
            "Dropping %d tool_use block(s) on stop reason %s",
            len(tool_calls),
            stop_reason,
        )
        tool_calls = []

    return LlmResponse(
        success=True,
        stop_reason=stop_reason,
        content=content,
        tool_calls=tuple(tool_calls),
        usage=usage,
    )


# ─── Client ───────────────────────────────────────────────────


class AnthropicLlmClient:
    """LLM client for Anthropic's Claude models.

    Retries transient failures (rate limits, timeouts, connection errors,
    5xx) with exponential backoff and bounds every attempt with
    ``timeout_seconds``. All failures come back as failed responses.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: anthropic.AsyncAnthropic | None = None,
        default_model: str = DEFAULT_MODEL,
        retry: RetryConfig | None = None,
        timeout_seconds: float = 60.0,
        enable_prompt_caching: bool = True,
    ) -> None:
        if client is None and api_key:
            # Retries are ours; keep the SDK from stacking its own on top.
            client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)
        self._client = client
        self._default_model = default_model
        self._retry = retry or RetryConfig()
        self._timeout = timeout_seconds
        self._enable_prompt_caching = enable_prompt_caching

    @property
    def provider_name(self) -> str:
        return PROVIDER_ID

    @property
    def supports_tool_use(self) -> bool:
        return True

    @property
    def supports_prompt_caching(self) -> bool:
        return True

    def build_params(self, request: LlmRequest) -> dict[str, Any]:
        """Translate a request into ``messages.create`` keyword arguments."""
        kwargs: dict[str, Any] = {
            "model": request.model or self._default_model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": to_anthropic_messages(request.messages),
        }
        if request.system_prompt:
            kwargs["system"] = build_system(
                request.system_prompt,
                cache=request.enable_prompt_caching and self._enable_prompt_caching,
            )
        if request.tools:
            kwargs["tools"] = to_anthropic_tools(request.tools)
        return kwargs

    async def complete(self, request: LlmRequest) -> LlmResponse:
        if self._client is None:
            logger.error("Anthropic API key is not configured")
            return LlmResponse.failure("Anthropic API key is not configured")

        try:
            kwargs = self.build_params(request)
        except ValueError as e:
            return LlmResponse.failure(f"[{PROVIDER_ID}] Invalid request: {e}")

        def _on_retry(attempt: int, delay: float, error: Exception) -> None:
            logger.warning(
                "Transient error calling Anthropic (attempt %d/%d), retrying in %.1fs: %s",
                attempt,
                self._retry.max_retries,
                delay,
                error,
            )

        start = time.monotonic()
        try:
            message = await retry_with_backoff(
                lambda: self._create(kwargs), self._retry, on_retry=_on_retry
            )
            response = to_llm_response(message, resolve_model_info(kwargs["model"]))
        except ProviderError as e:
            logger.error("Anthropic completion failed: %s", e)
            return LlmResponse.failure(str(e))
        except Exception as e:
            logger.exception("Unexpected error calling Anthropic")
            return LlmResponse.failure(f"[{PROVIDER_ID}] Unexpected error: {e}")

        logger.info(
            "Anthropic completion: stop=%s, tokens %d in / %d out / %d cached, %.0fms",
            response.stop_reason,
            response.usage.input_tokens,
            response.usage.output_tokens,
            response.usage.cache_read_tokens,
            (time.monotonic() - start) * 1000,
        )
        return response

    async def _create(self, kwargs: dict[str, Any]) -> Any:
        assert self._client is not None
        try:
            async with asyncio.timeout(self._timeout):
                return await self._client.messages.create(**kwargs)
        except TimeoutError as e:
            msg = f"Request timed out after {self._timeout}s"
            raise ProviderTimeoutError(PROVIDER_ID, msg) from e
        except anthropic.APIError as e:
            raise _map_error(e) from e
