"""Prompt templates: storage lookup plus ``{{name}}`` substitution.

Substitution is fail-open by default: a token with no matching
placeholder is left in the text verbatim, so optional placeholders may be
omitted. Pass ``strict=True`` to treat unresolved tokens as an error.
"""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from agentloop.core.errors import PromptTemplateError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")


@runtime_checkable
class TemplateStore(Protocol):
    """Key → raw template text. Files, database rows, remote config, ..."""

    async def read(self, path: str) -> str:
        """Return the raw template stored under ``path``.

        Raises:
            PromptTemplateError: If nothing is stored there.
        """
        ...


class FileTemplateStore:
    """Templates stored as files; relative paths resolve against ``base_dir``."""

    def __init__(self, base_dir: str | Path = ".") -> None:
        self._base_dir = Path(base_dir).expanduser()

    def resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else self._base_dir / p

    async def read(self, path: str) -> str:
        full = self.resolve(path)
        logger.debug("Loading template from disk: %s", full)
        try:
            return await asyncio.to_thread(full.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            msg = f"Template file not found: {full}"
            raise PromptTemplateError(msg) from e
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Cannot read template {full}: {e}"
            raise PromptTemplateError(msg) from e


class InMemoryTemplateStore:
    """Templates held in a dict. Handy for tests and embedded defaults."""

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._templates = dict(templates or {})

    def put(self, path: str, text: str) -> None:
        self._templates[path] = text

    async def read(self, path: str) -> str:
        try:
            return self._templates[path]
        except KeyError as e:
            msg = f"Template not found: {path}"
            raise PromptTemplateError(msg) from e


def find_placeholders(template: str) -> list[str]:
    """Names of the ``{{name}}`` tokens in ``template``, in first-seen order."""
    return list(dict.fromkeys(_TOKEN.findall(template)))


def substitute(
    template: str,
    placeholders: Mapping[str, object | None] | None = None,
    *,
    strict: bool = False,
) -> str:
    """Replace ``{{name}}`` tokens with values from ``placeholders``.

    ``None`` values become empty strings. Unknown tokens stay verbatim
    unless ``strict`` is set.

    Raises:
        PromptTemplateError: In strict mode, if any token is unresolved.
    """
    values = placeholders or {}
    missing: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            missing.append(key)
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)

    result = _TOKEN.sub(_replace, template)
    if missing:
        unique = list(dict.fromkeys(missing))
        if strict:
            msg = f"Unresolved template placeholders: {', '.join(unique)}"
            raise PromptTemplateError(msg)
        logger.debug("Leaving unresolved placeholders: %s", ", ".join(unique))
    return result


class PromptTemplate:
    """Loads templates from a :class:`TemplateStore` and renders them.

    Loaded templates are cached per path for the lifetime of the
    instance; call :meth:`clear_cache` to pick up edits.
    """

    def __init__(self, store: TemplateStore) -> None:
        self._store = store
        self._cache: dict[str, str] = {}

    async def load(self, path: str) -> str:
        """Return the raw template stored under ``path``.

        Raises:
            ValueError: If ``path`` is empty or blank.
            PromptTemplateError: If the store has no such template.
        """
        if not path or not path.strip():
            msg = "Template path must be a non-empty string"
            raise ValueError(msg)
        cached = self._cache.get(path)
        if cached is not None:
            logger.debug("Loaded template from cache: %s", path)
            return cached
        text = await self._store.read(path)
        self._cache[path] = text
        return text

    def substitute(
        self,
        template: str,
        placeholders: Mapping[str, object | None] | None = None,
        *,
        strict: bool = False,
    ) -> str:
        return substitute(template, placeholders, strict=strict)

    async def render(
        self,
        path: str,
        placeholders: Mapping[str, object | None] | None = None,
        *,
        strict: bool = False,
    ) -> str:
        """Load ``path`` and substitute ``placeholders`` into it."""
        return substitute(await self.load(path), placeholders, strict=strict)

    def clear_cache(self) -> None:
        self._cache.clear()
