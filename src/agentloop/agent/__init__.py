"""Agent loop: per-turn context, runner and run results."""

from agentloop.agent.context import AgentContext, build_context, prompt_placeholders
from agentloop.agent.runner import AgentRunner, AgentRunResult, RunStatus

__all__ = [
    "AgentContext",
    "AgentRunResult",
    "AgentRunner",
    "RunStatus",
    "build_context",
    "prompt_placeholders",
]
