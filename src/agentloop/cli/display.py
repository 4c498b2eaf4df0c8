"""Rich rendering for CLI output."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from agentloop.agent.runner import AgentRunResult
    from agentloop.tools.registry import ToolRegistry

_TRUNCATE_LEN = 80


def _truncate(text: str, limit: int = _TRUNCATE_LEN) -> str:
    """Truncate text to *limit* characters with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


class RunDisplay:
    """Renders tool listings and run results.

    Accepts an optional :class:`~rich.console.Console` for dependency
    injection in tests.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def show_tools(self, registry: ToolRegistry) -> None:
        table = Table(title="Tool providers")
        table.add_column("Provider")
        table.add_column("Enabled")
        table.add_column("Tool")
        table.add_column("Description")

        for name in registry.provider_names():
            enabled = "yes" if registry.is_enabled(name) else "no"
            for tool in registry.get_provider_tools(name):
                table.add_row(name, enabled, tool.name, _truncate(tool.description))

        self._console.print(table)

    def show_result(self, result: AgentRunResult) -> None:
        if result.success:
            title = "Answer (truncated)" if result.truncated else "Answer"
            self._console.print(
                Panel(Text(result.response or "(empty)"), title=title, border_style="green")
            )
        else:
            self._console.print(
                Panel(
                    Text(result.error_message or "Run failed"),
                    title=f"Failed ({result.status})",
                    border_style="red",
                )
            )

        usage = result.total_usage
        table = Table(show_header=False, box=None)
        table.add_row("Tool rounds", str(result.loop_count))
        table.add_row("Tool calls", str(result.total_tool_calls))
        table.add_row("Model calls", str(result.llm_calls))
        table.add_row(
            "Tokens",
            f"{usage.input_tokens:,} in / {usage.output_tokens:,} out "
            f"({usage.cache_read_tokens:,} cached)",
        )
        if usage.estimated_cost is not None:
            table.add_row("Est. cost", f"${usage.estimated_cost:.4f}")
        self._console.print(table)
