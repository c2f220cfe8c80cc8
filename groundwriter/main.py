"""groundwriter FastAPI application entry point.

Wires providers, services, and routes together via dependency injection.
Configuration comes from ``.env`` / environment variables layered over
``config/config.yaml``; logging is structured via structlog.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from groundwriter import __version__
from groundwriter.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from groundwriter.api.routes import router as api_router
from groundwriter.api.websocket import websocket_status
from groundwriter.config.loader import load_config, settings_from_config
from groundwriter.config.settings import Settings
from groundwriter.interfaces.document_store import IDocumentStore
from groundwriter.interfaces.embedding_provider import IEmbeddingProvider
from groundwriter.interfaces.llm_provider import ILLMProvider
from groundwriter.interfaces.vector_store_provider import IVectorStoreProvider
from groundwriter.pipeline.document_processor import DocumentProcessor
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from groundwriter.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from groundwriter.providers.extraction.pdf_extractor import PDFExtractor
from groundwriter.providers.extraction.screenshot_extractor import ScreenshotExtractor
from groundwriter.providers.extraction.url_extractor import URLExtractor
from groundwriter.providers.llm.openai_provider import OpenAILLMProvider
from groundwriter.providers.vector_store.chromadb_provider import ChromaDBProvider
from groundwriter.services.ingestion.chunker import TextChunker
from groundwriter.services.ingestion.ingestion_service import IngestionService
from groundwriter.services.rag_query_engine import RAGQueryEngine
from groundwriter.services.writing_service import WritingService
from groundwriter.utils.errors import ConfigurationError
from groundwriter.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = settings_from_config()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Component construction
# ---------------------------------------------------------------------------


def build_services(
    app_settings: Settings,
    *,
    embedding_provider: IEmbeddingProvider,
    vector_store: IVectorStoreProvider,
    llm: ILLMProvider,
    document_store: IDocumentStore,
    http_client: httpx.AsyncClient | None = None,
    status_bus: JobStatusBus | None = None,
) -> dict[str, Any]:
    """Assemble the service graph on top of already-built providers.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    bus = status_bus or JobStatusBus()
    chunker = TextChunker(
        chunk_size=app_settings.chunk_size,
        overlap=app_settings.chunk_overlap,
        min_length=app_settings.min_chunk_length,
    )
    ingestion_service = IngestionService(
        chunker=chunker,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        batch_size=app_settings.ingest_batch_size,
        batch_delay=app_settings.ingest_batch_delay,
        embedding_timeout=app_settings.embedding_timeout,
        vector_store_timeout=app_settings.vector_store_timeout,
    )
    query_engine = RAGQueryEngine(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        llm=llm,
        top_k=app_settings.rag_top_k,
        max_context_chars=app_settings.rag_max_context_chars,
        temperature=app_settings.rag_temperature,
        max_tokens=app_settings.rag_max_tokens,
        retrieval_timeout=app_settings.vector_store_timeout,
        llm_timeout=app_settings.llm_timeout,
    )
    writing_service = WritingService(
        query_engine=query_engine,
        llm=llm,
        status_bus=bus,
        llm_timeout=app_settings.llm_timeout,
    )

    extractors = [PDFExtractor(), URLExtractor(http_client=http_client)]
    if llm.supports_vision():
        extractors.append(ScreenshotExtractor(llm))
    document_processor = DocumentProcessor(
        document_store=document_store,
        status_bus=bus,
        ingestion_service=ingestion_service,
        extractors=extractors,
        extraction_timeout=app_settings.extraction_timeout,
        min_text_length=app_settings.min_chunk_length,
    )

    return {
        "settings": app_settings,
        "status_bus": bus,
        "document_store": document_store,
        "vector_store": vector_store,
        "ingestion_service": ingestion_service,
        "query_engine": query_engine,
        "writing_service": writing_service,
        "document_processor": document_processor,
        "provider_registry": {
            "llm": llm.is_available(),
            "embedding": embedding_provider.is_available(),
            "vector_store": vector_store.is_available(),
            "vision": llm.supports_vision(),
        },
    }


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application."""
    if not app_settings.has_openai():
        raise ConfigurationError(
            message="OPENAI_API_KEY is required for embeddings and generation",
            provider_name="openai",
        )

    http_client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
    llm = OpenAILLMProvider(settings=app_settings)
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )
    document_store = SQLiteDocumentStore(db_path=app_settings.document_db_path)

    components = build_services(
        app_settings,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        llm=llm,
        document_store=document_store,
        http_client=http_client,
    )
    components["http_client"] = http_client
    components["primary_llm_name"] = llm.get_provider_name()
    return components


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["document_store"].initialize()

    config = load_config()
    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        primary_llm=components["primary_llm_name"],
        embedding_model=config["llm"]["embedding_model"],
        collection=config["vector_store"]["collection"],
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="groundwriter API",
        version=__version__,
        description=(
            "Upload PDFs, web pages and screenshots, index them, and generate "
            "or edit writing grounded in what was uploaded. Processing status "
            "is pushed over server-sent events or WebSocket."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.cors_origins)

    application.include_router(api_router)

    @application.websocket("/ws/documents/{document_id}")
    async def ws_document_status(websocket: WebSocket, document_id: str) -> None:
        await websocket_status(websocket, document_id)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "groundwriter.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
