"""Layered TOML configuration.

Sources, lowest priority first:
    1. Model defaults in :mod:`agentloop.config.schema`
    2. ``$XDG_CONFIG_HOME/agentloop/config.toml`` (``~/.config`` when unset)
    3. ``./agentloop.toml``
    4. The file named by ``$AGENTLOOP_CONFIG``
    5. The ``path`` passed to :func:`load_config`
    6. The ``overrides`` mapping passed to :func:`load_config`

Tables are merged key by key; scalars and arrays from a later source
replace earlier ones. Sources 2 and 3 are optional. A path given through
4 or 5 must exist.

Configuration is read once at process start; nothing reloads it while a
run is in flight.

A vendor's key comes from ``api_key`` when set. Otherwise it is read
from the env var named by ``api_key_env``, or from the vendor's
conventional variable (``ANTHROPIC_API_KEY``) when the block names none.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from agentloop.core.errors import ConfigError

from .schema import DEFAULT_API_KEY_ENV, AgentLoopConfig

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "AGENTLOOP_CONFIG"


def config_sources(path: str | Path | None = None) -> list[Path]:
    """Config files :func:`load_config` would read, lowest priority first.

    Raises:
        ConfigError: If ``$AGENTLOOP_CONFIG`` or ``path`` names a missing file.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    user_dir = Path(xdg) if xdg else Path.home() / ".config"
    optional = [user_dir / "agentloop" / "config.toml", Path.cwd() / "agentloop.toml"]
    sources = [p for p in optional if p.is_file()]

    required = (
        (os.environ.get(ENV_CONFIG_PATH), f"{ENV_CONFIG_PATH} points to a missing file"),
        (path, "Config file not found"),
    )
    for value, problem in required:
        if not value:
            continue
        candidate = Path(value)
        if not candidate.is_file():
            msg = f"{problem}: {value}"
            raise ConfigError(msg)
        sources.append(candidate)
    return sources


def _read_table(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """New dict with ``override`` merged into ``base``; tables merge recursively."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _describe(error: ValidationError) -> str:
    """One ``location: problem`` line per validation error."""
    lines = []
    for item in error.errors():
        where = ".".join(str(part) for part in item["loc"]) or "(config)"
        lines.append(f"  {where}: {item['msg']}")
    return "\n".join(lines)


def _resolve_api_keys(config: AgentLoopConfig) -> None:
    for name, settings in config.providers.items():
        if settings.api_key is not None:
            continue
        env_name = settings.api_key_env or DEFAULT_API_KEY_ENV.get(name)
        if env_name:
            settings.api_key = os.environ.get(env_name)
    if config.providers[config.llm.provider].api_key is None:
        logger.debug("No API key available for LLM provider %s", config.llm.provider)


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> AgentLoopConfig:
    """Merge every config source and validate the result.

    Args:
        path: Explicit config file, above every discovered file.
        overrides: Mapping merged last, above every file.

    Raises:
        ConfigError: On a missing explicit file, invalid TOML, or a
            merged config that fails validation (including an unknown
            ``llm.provider`` or one without a ``[providers.<name>]`` block).
    """
    merged: dict[str, Any] = {}
    for source in config_sources(path):
        logger.debug("Merging config from %s", source)
        merged = _deep_merge(merged, _read_table(source))
    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        config = AgentLoopConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed:\n{_describe(e)}"
        raise ConfigError(msg) from e

    _resolve_api_keys(config)
    return config
