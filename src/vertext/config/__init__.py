"""Configuration loading and validation."""

from vertext.config.loader import load_config
from vertext.config.schema import (
    AssistantConfig,
    DatabaseConfig,
    EmbeddingConfig,
    LoggingConfig,
    ProviderConfig,
    SearchConfig,
    ToolsConfig,
    VertextConfig,
)

__all__ = [
    "AssistantConfig",
    "DatabaseConfig",
    "EmbeddingConfig",
    "LoggingConfig",
    "ProviderConfig",
    "SearchConfig",
    "ToolsConfig",
    "VertextConfig",
    "load_config",
]
