"""Configuration loading for vertext.

Layers, lowest priority first:

1. model defaults
2. ``$XDG_CONFIG_HOME/vertext/config.toml`` (``~/.config`` when unset)
3. ``./vertext.toml``
4. the file named by ``$VERTEXT_CONFIG``
5. the ``path`` passed to :func:`load_config`
6. single settings from ``VERTEXT_*`` variables (see :data:`ENV_SETTINGS`)
7. programmatic ``overrides``

After validation, provider API keys are filled in from their
``api_key_env`` variables and the embedding and assistant backend
choices are checked against what can actually run.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from vertext.core.errors import ConfigError
from vertext.embedding.models import GEMINI_VERSION, TFIDF_VERSION

from .schema import VertextConfig

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "VERTEXT_CONFIG"

ENV_SETTINGS: dict[str, tuple[str, str]] = {
    "VERTEXT_DATABASE_URL": ("database", "url"),
    "VERTEXT_EMBEDDING_BACKEND": ("embedding", "backend"),
    "VERTEXT_ASSISTANT_BACKEND": ("assistant", "backend"),
    "VERTEXT_LOG_LEVEL": ("logging", "level"),
}

# backend name -> version its vectors carry unless configured otherwise
EMBEDDING_BACKENDS: dict[str, int] = {"tfidf": TFIDF_VERSION, "gemini": GEMINI_VERSION}
ASSISTANT_BACKENDS = ("gemini", "none")


@dataclass(frozen=True, slots=True)
class ConfigSource:
    """A TOML file taking part in the merge."""

    label: str
    path: Path


def _user_config_path() -> Path:
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "vertext" / "config.toml"


def discover_sources(path: str | Path | None = None) -> list[ConfigSource]:
    """Config files in merge order. Optional layers are skipped when absent.

    ``$VERTEXT_CONFIG`` and an explicit *path* must exist.
    """
    sources: list[ConfigSource] = []
    for label, candidate in (
        ("user", _user_config_path()),
        ("project", Path.cwd() / "vertext.toml"),
    ):
        if candidate.is_file():
            sources.append(ConfigSource(label, candidate))

    env_path = os.environ.get(ENV_CONFIG_PATH)
    if env_path:
        if not Path(env_path).is_file():
            msg = f"{ENV_CONFIG_PATH} points to non-existent file: {env_path}"
            raise ConfigError(msg)
        sources.append(ConfigSource("env", Path(env_path)))

    if path is not None:
        if not Path(path).is_file():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        sources.append(ConfigSource("explicit", Path(path)))
    return sources


def _read_toml(path: Path) -> dict[str, Any]:
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
    """Merge *override* into a copy of *base*; nested tables merge key by key."""
    merged = base.copy()
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _env_settings() -> dict[str, Any]:
    settings: dict[str, Any] = {}
    for var, (section, key) in ENV_SETTINGS.items():
        value = os.environ.get(var)
        if value:
            settings.setdefault(section, {})[key] = value
    return settings


def _resolve_api_keys(config: VertextConfig) -> None:
    for provider in config.providers.values():
        if provider.api_key is None and provider.api_key_env:
            provider.api_key = os.environ.get(provider.api_key_env)


def _google_key(config: VertextConfig) -> str | None:
    google = config.providers.get("google")
    if google is None or not google.enabled:
        return None
    return google.api_key


def _check_backends(config: VertextConfig) -> None:
    embedding = config.embedding
    if embedding.backend not in EMBEDDING_BACKENDS:
        msg = (
            f"Unknown embedding backend: {embedding.backend} "
            f"(expected one of: {', '.join(EMBEDDING_BACKENDS)})"
        )
        raise ConfigError(msg)
    if embedding.version is not None:
        for name, version in EMBEDDING_BACKENDS.items():
            if name != embedding.backend and embedding.version == version:
                msg = (
                    f"embedding.version {version} belongs to the {name} model; "
                    f"pick another version for {embedding.backend} vectors"
                )
                raise ConfigError(msg)
    if embedding.backend == "gemini" and not _google_key(config):
        msg = 'embedding.backend = "gemini" needs a Google API key (providers.google)'
        raise ConfigError(msg)

    assistant = config.assistant.backend
    if assistant not in ASSISTANT_BACKENDS:
        msg = (
            f"Unknown assistant backend: {assistant} "
            f"(expected one of: {', '.join(ASSISTANT_BACKENDS)})"
        )
        raise ConfigError(msg)
    if assistant == "gemini" and not _google_key(config):
        logger.info("No Google API key configured; the assistant will use rule-based replies")


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> VertextConfig:
    """Merge every layer, validate and check backends.

    Raises:
        ConfigError: unreadable or invalid TOML, a missing named file,
            a validation failure, or a backend that cannot run.
    """
    merged: dict[str, Any] = {}
    for source in discover_sources(path):
        logger.debug("Reading %s config from %s", source.label, source.path)
        merged = _deep_merge(merged, _read_toml(source.path))
    merged = _deep_merge(merged, _env_settings())
    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        config = VertextConfig.model_validate(merged)
    except Exception as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e

    _resolve_api_keys(config)
    _check_backends(config)
    return config
