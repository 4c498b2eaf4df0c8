"""Exception hierarchy for agentloop.

Every module imports from here. The hierarchy is:

    AgentLoopError
    ├── ProviderError(provider_id)
    │   ├── ProviderAuthError
    │   ├── ProviderRateLimitError(retry_after)
    │   ├── ProviderTimeoutError
    │   ├── ProviderOverloadedError
    │   └── ModelNotFoundError
    ├── ToolError
    │   └── ToolProviderNotFoundError(provider_name)
    ├── PromptTemplateError
    └── ConfigError

Provider errors are raised inside LLM clients and converted to failed
responses before they reach the agent runner.
"""

from __future__ import annotations


class AgentLoopError(Exception):
    """Base exception for all agentloop errors."""


# ─── Provider Errors ──────────────────────────────────────────


class ProviderError(AgentLoopError):
    """Base for LLM provider errors."""

    def __init__(self, provider_id: str, message: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"[{provider_id}] {message}")


class ProviderAuthError(ProviderError):
    """Invalid or missing API key."""


class ProviderRateLimitError(ProviderError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(self, provider_id: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(provider_id, msg)


class ProviderTimeoutError(ProviderError):
    """Model call timed out or the connection dropped."""


class ProviderOverloadedError(ProviderError):
    """Provider is overloaded or returned a 5xx."""


class ModelNotFoundError(ProviderError):
    """Requested model not available from this provider."""


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(AgentLoopError):
    """Base for tool registry errors raised to callers (not to the model)."""


class ToolProviderNotFoundError(ToolError):
    """Enable/disable referenced a provider that was never registered."""

    def __init__(self, provider_name: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"Tool provider not registered: {provider_name}")


# ─── Prompt Errors ────────────────────────────────────────────


class PromptTemplateError(AgentLoopError):
    """Template could not be loaded or rendered."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(AgentLoopError):
    """Invalid configuration."""
