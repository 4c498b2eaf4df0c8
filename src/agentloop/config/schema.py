"""Pydantic models for agentloop configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

SUPPORTED_PROVIDERS = ("anthropic",)

# Env var consulted for a vendor's key when its block names none
DEFAULT_API_KEY_ENV = {"anthropic": "ANTHROPIC_API_KEY"}


class ProviderConfig(BaseModel):
    """Connection settings for a single LLM vendor."""

    api_key: str | None = None
    api_key_env: str | None = None
    default_model: str | None = None
    max_retries: int = Field(default=3, ge=0)
    timeout_seconds: float = Field(default=60.0, gt=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)
    retry_max_elapsed_seconds: float | None = Field(default=None, gt=0)
    enable_prompt_caching: bool = True


class LlmConfig(BaseModel):
    """Vendor selection and generation defaults."""

    provider: str = "anthropic"
    max_tokens: int = Field(default=1024, gt=0)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    enable_prompt_caching: bool = True

    @field_validator("provider")
    @classmethod
    def _supported_vendor(cls, value: str) -> str:
        name = value.strip().lower()
        if name not in SUPPORTED_PROVIDERS:
            msg = (
                f"Unknown LLM provider: {value} "
                f"(supported: {', '.join(SUPPORTED_PROVIDERS)})"
            )
            raise ValueError(msg)
        return name


class AgentConfig(BaseModel):
    """Bounds for the tool-use loop and system prompt location."""

    max_iterations: int = Field(default=10, ge=1)
    time_budget_seconds: float | None = Field(default=None, gt=0)
    max_parallel_tools: int = Field(default=4, ge=1)
    prompt_dir: str = "prompts"
    system_prompt_path: str = "agent_system.md"


class ToolsConfig(BaseModel):
    """Tool provider settings."""

    disabled_providers: list[str] = Field(default_factory=list)
    docs_dir: str = "docs"
    docs_base_url: str = ""


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class AgentLoopConfig(BaseModel):
    """Top-level configuration for agentloop."""

    llm: LlmConfig = Field(default_factory=LlmConfig)
    providers: dict[str, ProviderConfig] = Field(
        default_factory=lambda: {
            name: ProviderConfig(api_key_env=env)
            for name, env in DEFAULT_API_KEY_ENV.items()
        }
    )
    agent: AgentConfig = Field(default_factory=AgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("providers")
    @classmethod
    def _lowercase_vendor_names(
        cls, value: dict[str, ProviderConfig]
    ) -> dict[str, ProviderConfig]:
        return {name.lower(): settings for name, settings in value.items()}

    @model_validator(mode="after")
    def _selected_vendor_configured(self) -> AgentLoopConfig:
        if self.llm.provider not in self.providers:
            msg = f"No [providers.{self.llm.provider}] settings configured"
            raise ValueError(msg)
        return self
