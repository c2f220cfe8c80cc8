"""groundwriter domain models — re-exports all public model classes.

    - rag.py   — sources, chunks, retrieval and generation results
    - jobs.py  — job/document lifecycle records and status events
"""

from __future__ import annotations

from groundwriter.models.jobs import (
    AnalyzingEvent,
    CompletedEvent,
    DocumentRecord,
    FailedEvent,
    JobStatus,
    ProcessingEvent,
    StatusEvent,
    UploadedEvent,
    status_event_adapter,
)
from groundwriter.models.rag import (
    CorpusStats,
    DocumentChunk,
    GenerationResult,
    IngestionResult,
    RAGResponse,
    RetrievedChunk,
    Source,
    SourceType,
)

__all__ = [
    "AnalyzingEvent",
    "CompletedEvent",
    "CorpusStats",
    "DocumentChunk",
    "DocumentRecord",
    "FailedEvent",
    "GenerationResult",
    "IngestionResult",
    "JobStatus",
    "ProcessingEvent",
    "RAGResponse",
    "RetrievedChunk",
    "Source",
    "SourceType",
    "StatusEvent",
    "UploadedEvent",
    "status_event_adapter",
]
