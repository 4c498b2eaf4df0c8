"""Core errors and shared utilities."""

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
from agentloop.core.retry import RetryConfig, is_retryable, retry_with_backoff

__all__ = [
    "AgentLoopError",
    "ConfigError",
    "ModelNotFoundError",
    "PromptTemplateError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderOverloadedError",
    "ProviderRateLimitError",
    "ProviderTimeoutError",
    "RetryConfig",
    "ToolError",
    "ToolProviderNotFoundError",
    "is_retryable",
    "retry_with_backoff",
]
