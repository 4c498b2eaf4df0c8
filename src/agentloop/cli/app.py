"""Developer CLI.

Click commands for exercising the runtime from a terminal: ``tools``
lists what the model would be offered, ``ask`` runs one agent turn.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from agentloop import __version__
from agentloop.config.loader import load_config
from agentloop.core.errors import AgentLoopError, ConfigError, PromptTemplateError

if TYPE_CHECKING:
    from agentloop.agent.runner import AgentRunResult
    from agentloop.config.schema import AgentLoopConfig
    from agentloop.tools.base import ToolContext
    from agentloop.tools.registry import ToolRegistry

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant for a community server. "
    "Use the available tools to look things up instead of guessing. "
    "The user asking is {{user_id}} in guild {{guild_id}}. Today is {{current_date}}."
)


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> AgentLoopConfig:
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _setup_tools(config: AgentLoopConfig) -> ToolRegistry:
    """Register built-in tool providers and apply the disabled list."""
    from agentloop.tools.documentation import DocumentationToolProvider
    from agentloop.tools.registry import ToolRegistry

    registry = ToolRegistry()
    registry.register_provider(
        DocumentationToolProvider(
            config.tools.docs_dir, base_url=config.tools.docs_base_url
        )
    )

    for name in config.tools.disabled_providers:
        if name not in registry:
            msg = f"Unknown tool provider in tools.disabled_providers: {name}"
            raise ConfigError(msg)
        registry.disable_provider(name)

    return registry


# ── Group ────────────────────────────────────────────────────────


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="agentloop")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """agentloop - agentic tool-calling runtime."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """List the tools offered to the model."""
    config = _load_config(ctx.obj["config_path"])
    try:
        registry = _setup_tools(config)
    except AgentLoopError as e:
        _error(str(e))
        return

    from agentloop.cli.display import RunDisplay

    RunDisplay().show_tools(registry)


# ── ask ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("question")
@click.option("--user-id", type=int, default=0, help="Requesting user id.")
@click.option("--guild-id", type=int, default=None, help="Guild context.")
@click.option("--channel-id", type=int, default=None, help="Channel context.")
@click.option("--role", "roles", multiple=True, help="Role of the user (repeatable).")
@click.option(
    "--max-iterations",
    type=click.IntRange(min=1),
    default=None,
    help="Max tool-use rounds (overrides config).",
)
@click.pass_context
def ask(
    ctx: click.Context,
    question: str,
    user_id: int,
    guild_id: int | None,
    channel_id: int | None,
    roles: tuple[str, ...],
    max_iterations: int | None,
) -> None:
    """Run one agent turn for QUESTION and print the answer."""
    config = _load_config(ctx.obj["config_path"])
    if max_iterations is not None:
        config.agent.max_iterations = max_iterations

    from agentloop.core.logging_setup import configure_logging
    from agentloop.tools.base import ToolContext

    configure_logging(config.logging)
    tool_context = ToolContext(
        user_id=user_id,
        guild_id=guild_id,
        channel_id=channel_id,
        user_roles=frozenset(roles),
    )

    try:
        result = asyncio.run(_ask_async(question, config, tool_context))
    except AgentLoopError as e:
        _error(str(e))
        return

    from agentloop.cli.display import RunDisplay

    RunDisplay().show_result(result)
    if not result.success:
        sys.exit(1)


async def _ask_async(
    question: str,
    config: AgentLoopConfig,
    tool_context: ToolContext,
) -> AgentRunResult:
    from agentloop.agent.context import AgentContext, build_context, prompt_placeholders
    from agentloop.agent.runner import AgentRunner
    from agentloop.prompts.template import FileTemplateStore, PromptTemplate, substitute

    registry = _setup_tools(config)
    prompts = PromptTemplate(FileTemplateStore(Path(config.agent.prompt_dir)))

    try:
        context = await build_context(
            config, prompts, tool_context=tool_context, tool_registry=registry
        )
    except PromptTemplateError as e:
        click.echo(f"Warning: {e}; using the built-in system prompt", err=True)
        context = AgentContext.from_config(
            config,
            system_prompt=substitute(
                DEFAULT_SYSTEM_PROMPT, prompt_placeholders(tool_context)
            ),
            tool_context=tool_context,
            tool_registry=registry,
        )

    runner = AgentRunner.from_config(config)
    return await runner.run(question, context)
