"""Pydantic models for vertext configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProviderConfig(BaseModel):
    """Credentials for an external model provider."""

    enabled: bool = True
    api_key: str | None = None
    api_key_env: str | None = None


class DatabaseConfig(BaseModel):
    """Message store connection settings."""

    url: str = "sqlite+aiosqlite:///~/.local/share/vertext/vertext.db"


class EmbeddingConfig(BaseModel):
    """Embedding model and indexing settings."""

    backend: str = "tfidf"  # "tfidf" or "gemini"
    version: int | None = None  # None = model default
    dimension: int = 384
    model: str = "text-embedding-004"
    batch_size: int = Field(default=100, ge=1)
    search_batch_size: int = Field(default=50, ge=1)


class SearchConfig(BaseModel):
    """Defaults for the search_messages tool."""

    default_max_results: int = 5
    max_results_cap: int = 20
    default_threshold: float = 0.15


class ToolsConfig(BaseModel):
    """Limits for the listing tools."""

    list_threads_default: int = 20
    list_threads_max: int = 200
    list_messages_default: int = 20
    list_messages_max: int = 100
    max_message_length: int = 1600


class AssistantConfig(BaseModel):
    """Conversation orchestrator and generative backend settings."""

    backend: str = "gemini"  # "gemini" or "none"
    model: str = "gemini-2.5-flash"
    max_context_messages: int = 10
    rag_threshold: float = 0.3
    fallback_threshold: float = 0.15
    fallback_max_results: int = 10
    temperature: float = 0.7
    max_output_tokens: int = 1024


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class VertextConfig(BaseModel):
    """Top-level configuration for vertext."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    providers: dict[str, ProviderConfig] = Field(
        default_factory=lambda: {
            "google": ProviderConfig(api_key_env="GOOGLE_API_KEY"),
        }
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
