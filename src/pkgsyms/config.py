"""Configuration management for pkgsyms.

Settings are loaded from three sources in order of priority:
1. Environment variables (highest priority)
2. Project-level config: <root>/.pkgsyms.toml
3. Global config: ~/.config/pkgsyms/config.toml (lowest priority)

Command-line flags are applied on top by the CLI.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console

from pkgsyms.exceptions import ConfigError

console = Console(stderr=True)

_GLOBAL_CONFIG_DIR = Path.home() / ".config" / "pkgsyms"
_GLOBAL_CONFIG_PATH = _GLOBAL_CONFIG_DIR / "config.toml"
_PROJECT_CONFIG_NAME = ".pkgsyms.toml"


@dataclass
class SymbolsConfig:
    """pkgsyms configuration.

    Attributes:
        listing_concurrency: Maximum concurrent directory listings.
        parse_concurrency: Maximum concurrent package extractions.
        queue_size: Capacity of the bounded unit and job queues.
        build_tags: Build tags forwarded untouched to the extractor.
    """

    listing_concurrency: int = 20
    parse_concurrency: int = 8
    queue_size: int = 256
    build_tags: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Check that every limit is usable.

        Raises:
            ConfigError: If any limit is below 1.
        """
        for name in ("listing_concurrency", "parse_concurrency", "queue_size"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigError(f"{name} must be at least 1, got {value}")


def load_config(project_dir: Path) -> SymbolsConfig:
    """Load configuration from env vars, project config, and global config.

    Priority: env vars > <root>/.pkgsyms.toml > ~/.config/pkgsyms/config.toml

    Args:
        project_dir: Root directory being searched.

    Returns:
        A fully resolved, validated SymbolsConfig instance.

    Raises:
        ConfigError: If a setting has the wrong type or an invalid value.
    """
    config = SymbolsConfig()

    _apply_toml(config, _load_toml(_GLOBAL_CONFIG_PATH))
    _apply_toml(config, _load_toml(project_dir / _PROJECT_CONFIG_NAME))
    _apply_env(config)

    config.validate()
    return config


def parse_tags(raw: str) -> list[str]:
    """Split a comma- or space-separated tag list, dropping empties."""
    return [t for t in raw.replace(",", " ").split() if t]


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file, returning an empty dict if missing or invalid."""
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as exc:
        console.print(f"[yellow]Warning:[/yellow] Could not parse {path}: {exc}")
        return {}


def _as_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from exc


def _apply_toml(config: SymbolsConfig, settings: dict[str, Any]) -> None:
    """Merge TOML settings into a SymbolsConfig."""
    if "listing_concurrency" in settings:
        config.listing_concurrency = _as_int("listing_concurrency", settings["listing_concurrency"])
    if "parse_concurrency" in settings:
        config.parse_concurrency = _as_int("parse_concurrency", settings["parse_concurrency"])
    if "queue_size" in settings:
        config.queue_size = _as_int("queue_size", settings["queue_size"])
    if "tags" in settings:
        tags = settings["tags"]
        config.build_tags = parse_tags(tags) if isinstance(tags, str) else [str(t) for t in tags]


def _apply_env(config: SymbolsConfig) -> None:
    """Override config with environment variables where set."""
    if listing := os.environ.get("PKGSYMS_LISTING_CONCURRENCY"):
        config.listing_concurrency = _as_int("PKGSYMS_LISTING_CONCURRENCY", listing)
    if parse := os.environ.get("PKGSYMS_PARSE_CONCURRENCY"):
        config.parse_concurrency = _as_int("PKGSYMS_PARSE_CONCURRENCY", parse)
    if queue_size := os.environ.get("PKGSYMS_QUEUE_SIZE"):
        config.queue_size = _as_int("PKGSYMS_QUEUE_SIZE", queue_size)
    if tags := os.environ.get("PKGSYMS_TAGS"):
        config.build_tags = parse_tags(tags)
