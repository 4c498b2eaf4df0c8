"""Documentation tool provider — serves markdown feature guides.

Exposes three read-only tools to the model: ``list_features``,
``search_features`` and ``get_feature_documentation``. Documents live in
one directory; reads outside it are refused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from agentloop.tools.base import ToolDefinition, ToolExecutionResult

if TYPE_CHECKING:
    from agentloop.tools.base import ToolContext

logger = logging.getLogger(__name__)

PROVIDER_NAME = "documentation"
MAX_DOC_CHARS = 20_000


@dataclass(frozen=True, slots=True)
class FeatureDoc:
    """A documented feature and the file describing it."""

    name: str
    category: str
    summary: str
    file: str
    aliases: tuple[str, ...] = field(default_factory=tuple)

    def matches(self, key: str) -> bool:
        key = key.casefold()
        stem = Path(self.file).stem.casefold()
        return key in {self.name.casefold(), stem} | {a.casefold() for a in self.aliases}


def _first_paragraph(text: str) -> str:
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            return stripped
    return ""


def discover_features(docs_dir: str | Path) -> list[FeatureDoc]:
    """Build a catalog from every ``*.md`` file in ``docs_dir``."""
    root = Path(docs_dir)
    if not root.is_dir():
        return []
    features: list[FeatureDoc] = []
    for path in sorted(root.glob("*.md")):
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Cannot read documentation file %s", path)
            continue
        features.append(
            FeatureDoc(
                name=path.stem,
                category="General",
                summary=_first_paragraph(text),
                file=path.name,
            )
        )
    return features


_TOOLS: list[ToolDefinition] = [
    ToolDefinition(
        name="list_features",
        description="List every documented feature with its category and summary.",
        input_schema={"type": "object", "properties": {}},
    ),
    ToolDefinition(
        name="search_features",
        description=(
            "Search documented features by keyword. Matches names, categories, "
            "summaries and aliases."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Keyword to look for."},
            },
            "required": ["query"],
        },
    ),
    ToolDefinition(
        name="get_feature_documentation",
        description="Return the full documentation for one feature.",
        input_schema={
            "type": "object",
            "properties": {
                "feature_name": {
                    "type": "string",
                    "description": "Feature name or alias, e.g. 'reminders'.",
                },
            },
            "required": ["feature_name"],
        },
    ),
]


class DocumentationToolProvider:
    """Read-only access to feature documentation.

    Implements the :class:`~agentloop.tools.base.ToolProvider` protocol.
    """

    def __init__(
        self,
        docs_dir: str | Path,
        *,
        features: list[FeatureDoc] | None = None,
        base_url: str = "",
        max_chars: int = MAX_DOC_CHARS,
    ) -> None:
        self._docs_dir = Path(docs_dir).resolve()
        self._features = (
            features if features is not None else discover_features(self._docs_dir)
        )
        self._base_url = base_url.rstrip("/")
        self._max_chars = max_chars

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def description(self) -> str:
        return "Access feature documentation and guides"

    def get_tools(self) -> list[ToolDefinition]:
        return list(_TOOLS)

    async def execute_tool(
        self,
        name: str,
        input: dict[str, Any],
        context: ToolContext,
    ) -> ToolExecutionResult:
        logger.debug("Executing documentation tool %s", name)
        match name.casefold():
            case "list_features":
                return self._list_features()
            case "search_features":
                return self._search_features(input)
            case "get_feature_documentation":
                return self._get_documentation(input, context)
            case _:
                return ToolExecutionResult.error(
                    f"Tool '{name}' is not supported by provider {PROVIDER_NAME}"
                )

    def _list_features(self) -> ToolExecutionResult:
        return ToolExecutionResult.ok(
            {
                "features": [
                    {"name": f.name, "category": f.category, "summary": f.summary}
                    for f in self._features
                ],
                "count": len(self._features),
            }
        )

    def _search_features(self, input: dict[str, Any]) -> ToolExecutionResult:
        query = input.get("query")
        if not isinstance(query, str) or not query.strip():
            return ToolExecutionResult.error("Missing required parameter: query")
        needle = query.strip().casefold()
        hits = [
            {"name": f.name, "category": f.category, "summary": f.summary}
            for f in self._features
            if any(
                needle in text.casefold()
                for text in (f.name, f.category, f.summary, *f.aliases)
            )
        ]
        return ToolExecutionResult.ok({"query": query, "results": hits})

    def _get_documentation(
        self, input: dict[str, Any], context: ToolContext
    ) -> ToolExecutionResult:
        feature_name = input.get("feature_name")
        if not isinstance(feature_name, str) or not feature_name.strip():
            return ToolExecutionResult.error("Missing required parameter: feature_name")
        feature_name = feature_name.strip()

        feature = next((f for f in self._features if f.matches(feature_name)), None)
        if feature is None:
            return ToolExecutionResult.error(
                f"Documentation for feature '{feature_name}' not found. "
                "Use list_features to see what is available."
            )

        path = (self._docs_dir / feature.file).resolve()
        if not path.is_relative_to(self._docs_dir):
            logger.warning("Refusing documentation path outside docs dir: %s", path)
            return ToolExecutionResult.error(f"Invalid documentation path for {feature.name}")

        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.warning("Documentation file not found: %s", path)
            return ToolExecutionResult.error(
                f"Documentation for feature '{feature.name}' is unavailable"
            )
        except (OSError, UnicodeDecodeError) as e:
            return ToolExecutionResult.error(f"Cannot read documentation: {e}")

        if context.guild_id is not None:
            content = content.replace("{GUILD_ID}", str(context.guild_id))
            if self._base_url:
                content = content.replace("{BASE_URL}", self._base_url)

        truncated = len(content) > self._max_chars
        if truncated:
            content = content[: self._max_chars]

        return ToolExecutionResult.ok(
            {
                "feature": feature.name,
                "category": feature.category,
                "content": content,
                "truncated": truncated,
            }
        )
