"""docrag FastAPI application entry point.

Wires providers, services and routes together by constructor injection.
Settings come from ``.env``/environment and ``config/config.yaml``.

``build_components`` is shared with the CLI so both surfaces run the
exact same object graph.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import openai
import structlog
import uvicorn
from fastapi import FastAPI

from docrag import __version__
from docrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docrag.api.routes import router as api_router
from docrag.config.loader import load_config
from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from docrag.providers.llm.openai_provider import OpenAILLMProvider
from docrag.providers.vector_store.memory_store import InMemoryVectorStore
from docrag.services.circuit_breaker import CircuitBreaker
from docrag.services.embedding_service import EmbeddingService
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.document_service import DocumentService
from docrag.services.ingestion.streaming_processor import StreamingDocumentProcessor
from docrag.services.qa_service import RagService
from docrag.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_vector_store(app_settings: Settings) -> IVectorStoreProvider:
    """Return the configured vector store backend."""
    if app_settings.vector_store_backend == "memory":
        return InMemoryVectorStore()

    # Deferred so the memory backend never pays for importing chromadb.
    from docrag.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    *,
    embedding_provider: IEmbeddingProvider | None = None,
    llm_provider: ILLMProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
    document_store: IDocumentStore | None = None,
) -> dict[str, Any]:
    """Construct every provider and service.

    Any collaborator passed in replaces the one that would be built from
    settings.  Returns a flat dict of named components for ``app.state``.
    """
    http_client: httpx.AsyncClient | None = None
    if embedding_provider is None or llm_provider is None:
        http_client = httpx.AsyncClient(timeout=30.0)
        client_kwargs: dict[str, Any] = {
            "api_key": app_settings.openai_api_key or "unset",
            "http_client": http_client,
        }
        if app_settings.openai_base_url:
            client_kwargs["base_url"] = app_settings.openai_base_url
        openai_client = openai.AsyncOpenAI(**client_kwargs)
        embedding_provider = embedding_provider or OpenAIEmbeddingProvider(
            app_settings, client=openai_client
        )
        llm_provider = llm_provider or OpenAILLMProvider(app_settings, client=openai_client)

    vector_store = vector_store or _build_vector_store(app_settings)
    document_store = document_store or SQLiteDocumentStore(db_path=app_settings.document_db_path)

    embedding_service = EmbeddingService.from_settings(embedding_provider, app_settings)
    circuit_breaker = CircuitBreaker.from_settings(app_settings)
    chunker = TextChunker(
        chunk_size=app_settings.chunk_size,
        overlap=app_settings.chunk_overlap,
        boundary_slack=app_settings.chunk_boundary_slack,
    )
    processor = StreamingDocumentProcessor(
        chunker,
        embedding_service,
        vector_store,
        batch_size=app_settings.stream_batch_size,
        batch_pause=app_settings.stream_batch_pause,
    )
    document_service = DocumentService.from_settings(
        app_settings, document_store, vector_store, processor, circuit_breaker
    )
    rag_service = RagService.from_settings(app_settings, embedding_service, vector_store, llm_provider)

    return {
        "http_client": http_client,
        "embedding_provider": embedding_provider,
        "llm_provider": llm_provider,
        "vector_store": vector_store,
        "document_store": document_store,
        "embedding_service": embedding_service,
        "circuit_breaker": circuit_breaker,
        "document_service": document_service,
        "rag_service": rag_service,
    }


async def shutdown_components(components: dict[str, Any]) -> None:
    """Drain background ingestions, stop the gateway, close the HTTP client."""
    await components["document_service"].shutdown()
    await components["embedding_service"].shutdown()
    http_client: httpx.AsyncClient | None = components.get("http_client")
    if http_client is not None:
        await http_client.aclose()


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    components: dict[str, Any] | None = None,
    config_path: str = "config/config.yaml",
) -> FastAPI:
    """Build and configure the FastAPI application.

    Tests pass pre-built *components* to run against fakes.
    """
    app_settings = app_settings or Settings()
    config = load_config(config_path, settings=app_settings)
    api_config: dict[str, Any] = config.get("api", {})

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        built = components if components is not None else build_components(app_settings)
        for key, value in built.items():
            setattr(application.state, key, value)

        await built["document_store"].initialize()

        _logger.info(
            "app_startup",
            version=__version__,
            environment=app_settings.app_env,
            embedding_provider=built["embedding_provider"].get_provider_name(),
            llm_provider=built["llm_provider"].get_provider_name(),
            vector_store=built["vector_store"].get_provider_name(),
        )

        yield

        await shutdown_components(built)
        _logger.info("app_shutdown")

    application = FastAPI(
        title=api_config.get("title", "docrag"),
        version=__version__,
        description=api_config.get(
            "description",
            "Resilient document ingestion and grounded question answering",
        ),
        lifespan=_lifespan,
    )

    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=api_config.get("cors_origins"))

    application.include_router(api_router)
    return application


def main() -> None:
    app_settings = Settings()
    configure_logging(app_settings.log_level, json_output=app_settings.is_production)
    uvicorn.run(
        create_app(app_settings),
        host=app_settings.app_host,
        port=app_settings.app_port,
    )


if __name__ == "__main__":
    main()
