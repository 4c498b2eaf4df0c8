"""LLM client contract and vendor adapters."""

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
from agentloop.llm.factory import create_llm_client

__all__ = [
    "LlmClient",
    "LlmRequest",
    "LlmResponse",
    "Message",
    "ModelInfo",
    "Role",
    "StopReason",
    "TokenUsage",
    "create_llm_client",
]
