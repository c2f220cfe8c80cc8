"""Pydantic request/response schemas for the groundwriter API.

Request schemas end with ``Request`` and response schemas with
``Response``.  Domain models (:class:`DocumentRecord`,
:class:`RAGResponse`, :class:`GenerationResult`) are returned directly
where their shape is already the public contract.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from groundwriter.models.jobs import DocumentRecord, JobStatus
from groundwriter.models.rag import SourceType
from groundwriter.services.writing_service import AssistAction


class IngestSourceRequest(BaseModel):
    """Raw text to index under a caller-chosen source id."""

    source_id: str = Field(..., min_length=1, max_length=200)
    source_name: str = Field(..., min_length=1, max_length=500)
    source_type: SourceType = SourceType.URL
    content: str


class IngestSourceResponse(BaseModel):
    success: bool
    message: str
    source_id: str
    chunk_count: int
    average_chunk_size: int


class DeleteSourceResponse(BaseModel):
    success: bool
    source_id: str
    chunks_deleted: int


class QueryRequest(BaseModel):
    # Blank-after-strip questions are rejected by the engine (422).
    question: str = Field(..., max_length=4000)


class CorpusStatsResponse(BaseModel):
    """Knowledge-base size."""

    total_chunks: int = 0
    unique_sources: int = 0


class DocumentAcceptedResponse(BaseModel):
    """Returned with 202 once a document job has been queued."""

    document_id: str
    status: JobStatus


class DocumentListResponse(BaseModel):
    documents: list[DocumentRecord]


class DocumentURLRequest(BaseModel):
    url: str = Field(..., min_length=8, max_length=2048, pattern=r"^https?://")


class DeleteDocumentResponse(BaseModel):
    success: bool
    document_id: str
    chunks_deleted: int


class GenerateRequest(BaseModel):
    """Content generation request; ``title`` is generated when omitted."""

    prompt: str = Field(..., max_length=8000)
    title: str | None = Field(default=None, max_length=300)
    job_id: str | None = Field(
        default=None,
        max_length=200,
        description="Publish generation milestones on the status bus under this id",
    )


class AssistRequest(BaseModel):
    """Writing-assist request.

    ``context`` is surrounding document text; it is ignored when it is
    only a few characters long.
    """

    action: AssistAction
    content: str = Field(..., max_length=200_000)
    context: str | None = Field(default=None, max_length=200_000)
    instructions: str | None = Field(default=None, max_length=2000)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, bool]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
    provider: str | None = None
