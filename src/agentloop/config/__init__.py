"""Configuration schema and loader."""

from agentloop.config.loader import load_config
from agentloop.config.schema import (
    AgentConfig,
    AgentLoopConfig,
    LlmConfig,
    LoggingConfig,
    ProviderConfig,
    ToolsConfig,
)

__all__ = [
    "AgentConfig",
    "AgentLoopConfig",
    "LlmConfig",
    "LoggingConfig",
    "ProviderConfig",
    "ToolsConfig",
    "load_config",
]
