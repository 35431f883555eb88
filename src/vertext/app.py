"""Application wiring.

There is no global registry or service locator: everything is built
here and passed explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from vertext.assistant.fallback import FallbackAssistant
from vertext.assistant.gemini import GeminiRagBackend
from vertext.assistant.orchestrator import ConversationOrchestrator
from vertext.core.errors import ConfigError
from vertext.embedding.index import EmbeddingIndex
from vertext.embedding.models import GeminiEmbeddingModel, TfidfEmbeddingModel
from vertext.mcp.server import McpServer
from vertext.memory.db import create_session_factory
from vertext.memory.store import SqlMessageStore
from vertext.messaging import LocalTransport, MessagingService
from vertext.tools.builtin import create_default_registry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from vertext.assistant.backend import GenerativeBackend
    from vertext.config.schema import VertextConfig
    from vertext.embedding.models import EmbeddingModel
    from vertext.memory.store import MessageStore
    from vertext.messaging import MessageTransport
    from vertext.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Application:
    """Every long-lived component, wired together."""

    config: VertextConfig
    store: MessageStore
    index: EmbeddingIndex
    messaging: MessagingService
    registry: ToolRegistry
    server: McpServer
    orchestrator: ConversationOrchestrator
    engine: AsyncEngine | None = None

    async def close(self) -> None:
        await self.orchestrator.close()
        try:
            await self.index.wait_idle()
        except Exception:
            logger.exception("Background indexing failed")
        if self.engine is not None:
            await self.engine.dispose()


def _google_api_key(config: VertextConfig) -> str | None:
    provider = config.providers.get("google")
    if provider is None or not provider.enabled:
        return None
    return provider.api_key


def create_embedding_model(config: VertextConfig) -> EmbeddingModel:
    cfg = config.embedding
    if cfg.backend == "tfidf":
        if cfg.version is not None:
            return TfidfEmbeddingModel(dimension=cfg.dimension, version=cfg.version)
        return TfidfEmbeddingModel(dimension=cfg.dimension)
    if cfg.backend == "gemini":
        api_key = _google_api_key(config)
        if not api_key:
            msg = "Gemini embeddings need a Google API key (providers.google)"
            raise ConfigError(msg)
        if cfg.version is not None:
            return GeminiEmbeddingModel(api_key, model=cfg.model, version=cfg.version)
        return GeminiEmbeddingModel(api_key, model=cfg.model)
    msg = f"Unknown embedding backend: {cfg.backend}"
    raise ConfigError(msg)


def create_backend(config: VertextConfig, server: McpServer) -> GenerativeBackend | None:
    cfg = config.assistant
    if cfg.backend == "none":
        return None
    if cfg.backend == "gemini":
        return GeminiRagBackend(
            server,
            _google_api_key(config),
            model=cfg.model,
            rag_threshold=cfg.rag_threshold,
            temperature=cfg.temperature,
            max_output_tokens=cfg.max_output_tokens,
        )
    msg = f"Unknown assistant backend: {cfg.backend}"
    raise ConfigError(msg)


def assemble(
    config: VertextConfig,
    store: MessageStore,
    *,
    model: EmbeddingModel | None = None,
    transport: MessageTransport | None = None,
    backend: GenerativeBackend | None = None,
    engine: AsyncEngine | None = None,
) -> Application:
    """Wire components around an existing store.

    ``backend`` overrides the configured generative backend; pass
    ``config.assistant.backend = "none"`` to run rule-based only.
    """
    index = EmbeddingIndex(
        store,
        model or create_embedding_model(config),
        search_batch_size=config.embedding.search_batch_size,
    )
    messaging = MessagingService(
        store,
        transport or LocalTransport(),
        index=index,
        embed_batch_size=config.embedding.batch_size,
    )
    registry = create_default_registry(
        store,
        index,
        messaging,
        tools_config=config.tools,
        search_config=config.search,
    )
    server = McpServer(registry)
    orchestrator = ConversationOrchestrator(
        server,
        backend if backend is not None else create_backend(config, server),
        max_context_messages=config.assistant.max_context_messages,
        fallback=FallbackAssistant(
            server,
            search_max_results=config.assistant.fallback_max_results,
            search_threshold=config.assistant.fallback_threshold,
        ),
    )
    return Application(
        config=config,
        store=store,
        index=index,
        messaging=messaging,
        registry=registry,
        server=server,
        orchestrator=orchestrator,
        engine=engine,
    )


async def build_application(
    config: VertextConfig,
    *,
    model: EmbeddingModel | None = None,
    transport: MessageTransport | None = None,
    backend: GenerativeBackend | None = None,
) -> Application:
    """Open the configured database and wire the application around it."""
    factory, engine = await create_session_factory(config.database.url)
    logger.debug("Opened message store at %s", config.database.url)
    return assemble(
        config,
        SqlMessageStore(factory),
        model=model,
        transport=transport,
        backend=backend,
        engine=engine,
    )
