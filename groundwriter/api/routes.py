"""FastAPI routes for the groundwriter API.

Endpoint                                Method  Description
/api/v1/sources/ingest                  POST    Index raw text under a source id
/api/v1/sources/{source_id}             DELETE  Remove a source's chunks
/api/v1/query                           POST    Answer a question from the sources
/api/v1/corpus/stats                    GET     Knowledge-base size
/api/v1/documents/upload                POST    Upload a PDF or screenshot (202)
/api/v1/documents/url                   POST    Queue a web page (202)
/api/v1/documents                       GET     Recently updated documents
/api/v1/documents/{document_id}         GET     Document record
/api/v1/documents/{document_id}         DELETE  Remove a document and its chunks
/api/v1/documents/{document_id}/events  GET     SSE status stream for one document
/api/v1/events                          GET     SSE status stream for every job
/api/v1/generate                        POST    Generate titled, grounded content
/api/v1/assist                          POST    Writing-assist action
/api/v1/health                          GET     Health check + provider status

Service dependencies are resolved from ``app.state`` (populated by the
lifespan in ``main.py``) with the ``Annotated[..., Depends(...)]``
pattern.  Domain errors are turned into JSON responses by
:class:`~groundwriter.api.middleware.ErrorHandlingMiddleware`.
"""

from __future__ import annotations

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from groundwriter import __version__
from groundwriter.api.schemas import (
    AssistRequest,
    CorpusStatsResponse,
    DeleteDocumentResponse,
    DeleteSourceResponse,
    DocumentAcceptedResponse,
    DocumentListResponse,
    DocumentURLRequest,
    ErrorResponse,
    GenerateRequest,
    HealthResponse,
    IngestSourceRequest,
    IngestSourceResponse,
    QueryRequest,
)
from groundwriter.api.status_stream import SSE_HEADERS, StatusStream, sse_events
from groundwriter.config.settings import Settings
from groundwriter.interfaces.document_store import IDocumentStore
from groundwriter.models.jobs import DocumentRecord
from groundwriter.models.rag import GenerationResult, RAGResponse, SourceType
from groundwriter.pipeline.document_processor import DocumentProcessor
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.services.ingestion.ingestion_service import IngestionService
from groundwriter.services.rag_query_engine import RAGQueryEngine
from groundwriter.services.writing_service import WritingService
from groundwriter.utils.errors import DocumentNotFoundError
from groundwriter.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_PDF_CONTENT_TYPES = frozenset({"application/pdf"})
_IMAGE_CONTENT_TYPES = frozenset({"image/png", "image/jpeg", "image/webp", "image/gif"})

# Uploads are read in 64 KB increments so oversized files are rejected
# before they are fully buffered.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_status_bus(request: Request) -> JobStatusBus:
    return request.app.state.status_bus


def _get_document_store(request: Request) -> IDocumentStore:
    return request.app.state.document_store


def _get_document_processor(request: Request) -> DocumentProcessor:
    return request.app.state.document_processor


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_query_engine(request: Request) -> RAGQueryEngine:
    return request.app.state.query_engine


def _get_writing_service(request: Request) -> WritingService:
    return request.app.state.writing_service


SettingsDep = Annotated[Settings, Depends(_get_settings)]
BusDep = Annotated[JobStatusBus, Depends(_get_status_bus)]
DocumentStoreDep = Annotated[IDocumentStore, Depends(_get_document_store)]
ProcessorDep = Annotated[DocumentProcessor, Depends(_get_document_processor)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
QueryEngineDep = Annotated[RAGQueryEngine, Depends(_get_query_engine)]
WritingDep = Annotated[WritingService, Depends(_get_writing_service)]


# ---------------------------------------------------------------------------
# Sources and retrieval
# ---------------------------------------------------------------------------


@router.post(
    "/sources/ingest",
    response_model=IngestSourceResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Chunk, embed and index raw source text",
)
async def ingest_source(body: IngestSourceRequest, ingestion: IngestionDep) -> IngestSourceResponse:
    result = await ingestion.ingest(
        source_id=body.source_id,
        source_name=body.source_name,
        source_type=body.source_type,
        content=body.content,
    )
    return IngestSourceResponse(
        success=True,
        message=f"Indexed {result.chunks_created} chunks from {result.source_name}",
        source_id=result.source_id,
        chunk_count=result.chunks_created,
        average_chunk_size=result.average_chunk_size,
    )


@router.delete(
    "/sources/{source_id}",
    response_model=DeleteSourceResponse,
    summary="Remove every chunk of a source",
)
async def delete_source(source_id: str, ingestion: IngestionDep) -> DeleteSourceResponse:
    removed = await ingestion.remove_source(source_id)
    return DeleteSourceResponse(success=True, source_id=source_id, chunks_deleted=removed)


@router.post(
    "/query",
    response_model=RAGResponse,
    responses={
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Answer a question from the indexed sources",
)
async def query_sources(body: QueryRequest, engine: QueryEngineDep) -> RAGResponse:
    try:
        return await engine.query(body.question)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get(
    "/corpus/stats",
    response_model=CorpusStatsResponse,
    summary="Knowledge-base statistics",
)
async def corpus_stats(ingestion: IngestionDep) -> CorpusStatsResponse:
    stats = await ingestion.get_corpus_stats()
    return CorpusStatsResponse(
        total_chunks=stats.total_chunks,
        unique_sources=stats.unique_sources,
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents/upload",
    status_code=202,
    response_model=DocumentAcceptedResponse,
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Upload a PDF or screenshot for background processing",
)
async def upload_document(
    file: UploadFile,
    background_tasks: BackgroundTasks,
    processor: ProcessorDep,
    settings: SettingsDep,
) -> DocumentAcceptedResponse:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type in _PDF_CONTENT_TYPES:
        source_type = SourceType.PDF
    elif content_type in _IMAGE_CONTENT_TYPES:
        source_type = SourceType.SCREENSHOT
    else:
        allowed = sorted(_PDF_CONTENT_TYPES | _IMAGE_CONTENT_TYPES)
        raise HTTPException(
            status_code=415,
            detail=f"Unsupported file type: {content_type or 'unknown'}. Allowed: {', '.join(allowed)}",
        )

    limit = settings.max_upload_bytes
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(_UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > limit:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {limit // (1024 * 1024)} MB",
            )
        chunks.append(chunk)
    if total_size == 0:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    data = b"".join(chunks)

    record = await processor.register(file.filename or "untitled", source_type)
    background_tasks.add_task(processor.process, record.id, data)
    _logger.info(
        "document_upload_accepted",
        document_id=record.id,
        source_type=source_type.value,
        size_bytes=total_size,
    )
    return DocumentAcceptedResponse(document_id=record.id, status=record.status)


@router.post(
    "/documents/url",
    status_code=202,
    response_model=DocumentAcceptedResponse,
    summary="Queue a web page for background processing",
)
async def submit_url(
    body: DocumentURLRequest,
    background_tasks: BackgroundTasks,
    processor: ProcessorDep,
) -> DocumentAcceptedResponse:
    record = await processor.register(body.url, SourceType.URL)
    background_tasks.add_task(processor.process, record.id, body.url)
    _logger.info("document_url_accepted", document_id=record.id, url=body.url)
    return DocumentAcceptedResponse(document_id=record.id, status=record.status)


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="Recently updated documents",
)
async def list_documents(
    store: DocumentStoreDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> DocumentListResponse:
    return DocumentListResponse(documents=await store.list_recent(limit=limit))


@router.get(
    "/documents/{document_id}",
    response_model=DocumentRecord,
    responses={404: {"model": ErrorResponse}},
    summary="Current state of a document",
)
async def get_document(document_id: str, store: DocumentStoreDep) -> DocumentRecord:
    record = await store.get(document_id)
    if record is None:
        raise DocumentNotFoundError(message=f"Document not found: {document_id}")
    return record


@router.delete(
    "/documents/{document_id}",
    response_model=DeleteDocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document and its indexed chunks",
)
async def delete_document(document_id: str, processor: ProcessorDep) -> DeleteDocumentResponse:
    removed = await processor.delete(document_id)
    return DeleteDocumentResponse(success=True, document_id=document_id, chunks_deleted=removed)


# ---------------------------------------------------------------------------
# Status streams
# ---------------------------------------------------------------------------


@router.get(
    "/documents/{document_id}/events",
    responses={404: {"model": ErrorResponse}},
    summary="Server-sent status events for one document",
)
async def document_events(
    document_id: str,
    bus: BusDep,
    store: DocumentStoreDep,
    settings: SettingsDep,
) -> StreamingResponse:
    record = await store.get(document_id)
    if record is None:
        raise DocumentNotFoundError(message=f"Document not found: {document_id}")
    stream = StatusStream(
        bus,
        document_id,
        heartbeat_interval=settings.status_heartbeat_interval,
        connected_info={"status": record.status.value, "progress": record.status.progress},
    )
    return StreamingResponse(
        sse_events(stream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/events", summary="Server-sent status events for every job")
async def all_events(bus: BusDep, settings: SettingsDep) -> StreamingResponse:
    stream = StatusStream(bus, None, heartbeat_interval=settings.status_heartbeat_interval)
    return StreamingResponse(
        sse_events(stream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


@router.post(
    "/generate",
    response_model=GenerationResult,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Generate titled content grounded in the sources",
)
async def generate_content(body: GenerateRequest, writer: WritingDep) -> GenerationResult:
    try:
        return await writer.generate(body.prompt, title=body.title, job_id=body.job_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.post(
    "/assist",
    response_model=GenerationResult,
    responses={422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Continue, improve, rewrite, expand or summarize text",
)
async def assist_writing(body: AssistRequest, writer: WritingDep) -> GenerationResult:
    try:
        return await writer.assist(
            body.action,
            body.content,
            context=body.context,
            instructions=body.instructions,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))
    status = "healthy" if providers and all(providers.values()) else "degraded"
    return HealthResponse(status=status, version=__version__, providers=providers)
