"""Build the configured LLM client."""

from __future__ import annotations

from typing import TYPE_CHECKING

from agentloop.core.errors import ConfigError
from agentloop.core.retry import RetryConfig

if TYPE_CHECKING:
    from agentloop.config.schema import AgentLoopConfig, ProviderConfig
    from agentloop.llm.base import LlmClient


def _anthropic(settings: ProviderConfig) -> LlmClient:
    from agentloop.llm.anthropic import DEFAULT_MODEL, AnthropicLlmClient

    return AnthropicLlmClient(
        api_key=settings.api_key,
        default_model=settings.default_model or DEFAULT_MODEL,
        retry=RetryConfig.from_provider(settings),
        timeout_seconds=settings.timeout_seconds,
        enable_prompt_caching=settings.enable_prompt_caching,
    )


_BUILDERS = {"anthropic": _anthropic}


def create_llm_client(config: AgentLoopConfig) -> LlmClient:
    """Instantiate the client for ``config.llm.provider``.

    Vendor name and settings block are checked when the config is
    validated; this only guards against a config changed afterwards.

    Raises:
        ConfigError: If the vendor has no client or no settings block.
    """
    name = config.llm.provider
    build = _BUILDERS.get(name)
    settings = config.providers.get(name)
    if build is None or settings is None:
        msg = f"LLM provider {name} is not configured (supported: {', '.join(_BUILDERS)})"
        raise ConfigError(msg)
    return build(settings)
