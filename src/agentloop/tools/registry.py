"""Tool registry — routes tool calls across registered providers.

Providers are kept in registration order and can be enabled or disabled
at runtime. When two enabled providers expose a tool with the same name
(compared case-insensitively), the first-registered provider wins: its
definition is the one advertised to the model and the one executed.
Later providers are unreachable under that name until the earlier one is
disabled.

The provider list is shared by every in-flight agent run. All reads and
writes go through one lock; tool execution itself happens outside it.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from agentloop.core.errors import ToolProviderNotFoundError
from agentloop.tools.base import ToolExecutionResult

if TYPE_CHECKING:
    from agentloop.tools.base import ToolContext, ToolDefinition, ToolProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ProviderEntry:
    provider: ToolProvider
    enabled: bool


def _tools_of(provider: ToolProvider) -> list[ToolDefinition]:
    """Definitions a provider exposes; empty if listing them raises."""
    try:
        return list(provider.get_tools())
    except Exception:
        logger.exception("Tool provider %s failed to list its tools", provider.name)
        return []


class ToolRegistry:
    """Registry of tool providers with enable/disable support."""

    def __init__(self, providers: list[ToolProvider] | None = None) -> None:
        self._entries: list[_ProviderEntry] = []
        self._lock = threading.RLock()
        for provider in providers or []:
            self.register_provider(provider)

    # ── Registration ─────────────────────────────────────────────

    def register_provider(self, provider: ToolProvider, *, enabled: bool = True) -> None:
        """Register a provider. A duplicate name is logged and ignored."""
        with self._lock:
            if self._find(provider.name) is not None:
                logger.warning(
                    "Tool provider %s is already registered; skipping duplicate",
                    provider.name,
                )
                return
            self._entries.append(_ProviderEntry(provider, enabled))
            logger.info(
                "Registered tool provider %s (%s) with %d tools, enabled=%s",
                provider.name,
                provider.description,
                len(_tools_of(provider)),
                enabled,
            )

    def enable_provider(self, name: str) -> None:
        """Enable a registered provider.

        Raises:
            ToolProviderNotFoundError: If no provider has that name.
        """
        self._set_enabled(name, enabled=True)

    def disable_provider(self, name: str) -> None:
        """Disable a registered provider; its tools vanish immediately.

        Raises:
            ToolProviderNotFoundError: If no provider has that name.
        """
        self._set_enabled(name, enabled=False)

    def _set_enabled(self, name: str, *, enabled: bool) -> None:
        with self._lock:
            entry = self._find(name)
            if entry is None:
                raise ToolProviderNotFoundError(name)
            if entry.enabled == enabled:
                logger.debug(
                    "Tool provider %s already %s",
                    name,
                    "enabled" if enabled else "disabled",
                )
                return
            entry.enabled = enabled
            logger.info(
                "%s tool provider %s", "Enabled" if enabled else "Disabled", name
            )

    def _find(self, name: str) -> _ProviderEntry | None:
        wanted = name.casefold()
        for entry in self._entries:
            if entry.provider.name.casefold() == wanted:
                return entry
        return None

    # ── Lookup ───────────────────────────────────────────────────

    def get_enabled_tools(self) -> list[ToolDefinition]:
        """Tool definitions of every enabled provider, in registration order.

        Shadowed duplicates (same name exposed by a later provider) are
        left out, so the returned names are unique. A provider whose
        ``get_tools`` raises contributes nothing.
        """
        tools: list[ToolDefinition] = []
        owners: dict[str, str] = {}
        with self._lock:
            enabled = [e.provider for e in self._entries if e.enabled]
        for provider in enabled:
            for tool in _tools_of(provider):
                key = tool.name.casefold()
                if key in owners:
                    logger.warning(
                        "Tool %s from provider %s is shadowed by provider %s",
                        tool.name,
                        provider.name,
                        owners[key],
                    )
                    continue
                owners[key] = provider.name
                tools.append(tool)
        logger.debug(
            "Retrieved %d tools from %d enabled providers", len(tools), len(enabled)
        )
        return tools

    def resolve(self, tool_name: str) -> ToolProvider | None:
        """First enabled provider (registration order) exposing ``tool_name``."""
        wanted = tool_name.casefold()
        with self._lock:
            enabled = [e.provider for e in self._entries if e.enabled]
        for provider in enabled:
            if any(t.name.casefold() == wanted for t in _tools_of(provider)):
                return provider
        return None

    def get_provider_tools(self, name: str) -> list[ToolDefinition]:
        """Definitions exposed by one registered provider, enabled or not.

        Raises:
            ToolProviderNotFoundError: If no provider has that name.
        """
        return _tools_of(self.get_provider(name))

    # ── Execution ────────────────────────────────────────────────

    async def execute_tool(
        self,
        name: str,
        input: dict[str, Any],
        context: ToolContext,
    ) -> ToolExecutionResult:
        """Route a tool call to its provider and execute it.

        Never raises for routing or provider failures: an unknown tool
        or a raising provider yields a failed :class:`ToolExecutionResult`.
        Providers that cannot list their tools are skipped while routing.
        """
        provider = self.resolve(name)
        if provider is None:
            logger.warning("Tool %s not found in any enabled provider", name)
            return ToolExecutionResult.error(f"Tool not found: {name}")

        logger.debug(
            "Routing tool %s to provider %s (user %s, guild %s)",
            name,
            provider.name,
            context.user_id,
            context.guild_id,
        )
        try:
            result = await provider.execute_tool(name, input, context)
        except Exception as exc:
            logger.exception(
                "Tool %s raised in provider %s", name, provider.name
            )
            return ToolExecutionResult.error(f"Tool execution failed: {exc}")

        if not result.success:
            logger.warning(
                "Tool %s failed in provider %s: %s",
                name,
                provider.name,
                result.error_message,
            )
        return result

    # ── Introspection ────────────────────────────────────────────

    def get_provider(self, name: str) -> ToolProvider:
        """Registered provider by name, enabled or not.

        Raises:
            ToolProviderNotFoundError: If no provider has that name.
        """
        with self._lock:
            entry = self._find(name)
            if entry is None:
                raise ToolProviderNotFoundError(name)
            return entry.provider

    def provider_names(self) -> list[str]:
        with self._lock:
            return [e.provider.name for e in self._entries]

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return self._find(name) is not None

    def is_enabled(self, name: str) -> bool:
        with self._lock:
            entry = self._find(name)
            return entry is not None and entry.enabled

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return self.is_registered(name)
