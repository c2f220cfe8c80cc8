"""Background job runner that takes one uploaded document through its lifecycle.

Stages and the events published for each::

    register()  -> record created as uploaded      -> uploaded   (25)
    process()   -> text extraction                 -> processing (50)
                -> chunk + embed + index           -> analyzing  (75)
                -> record completed                -> completed  (100)
    any error   -> record failed, message stored   -> failed     (0)

The record is re-read before every stage (and before each ingestion
batch through the ingestion checkpoint).  If it has disappeared the job
stops, publishes a ``failed`` event saying so and does not recreate or
write to the record.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from typing import Any

import structlog

from groundwriter.interfaces.document_store import IDocumentStore
from groundwriter.interfaces.source_extractor import ISourceExtractor
from groundwriter.models.jobs import DocumentRecord, JobStatus
from groundwriter.models.rag import SourceType
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.pipeline.status_events import (
    analyzing_event,
    completed_event,
    failed_event,
    processing_event,
    uploaded_event,
)
from groundwriter.services.ingestion.ingestion_service import Checkpoint, IngestionService
from groundwriter.utils.errors import (
    DocumentNotFoundError,
    ExtractionError,
    GroundwriterError,
    PipelineError,
)
from groundwriter.utils.logging import get_logger
from groundwriter.utils.timeouts import with_timeout

_DELETED_MESSAGE = "Document was deleted during processing"

_TYPE_LABELS: dict[SourceType, str] = {
    SourceType.PDF: "PDF Document",
    SourceType.URL: "Web Page",
    SourceType.SCREENSHOT: "Screenshot",
}


class DocumentProcessor:
    """Owns the :class:`DocumentRecord` of each job and publishes its milestones.

    Parameters
    ----------
    document_store:
        Persistent record store (source of truth for job state).
    status_bus:
        Where lifecycle events are published.
    ingestion_service:
        Chunks, embeds and indexes the extracted text.
    extractors:
        One extractor per :class:`SourceType`.
    extraction_timeout:
        Deadline in seconds for a single extraction call.
    min_text_length:
        Extracted text shorter than this fails the job.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        status_bus: JobStatusBus,
        ingestion_service: IngestionService,
        extractors: Iterable[ISourceExtractor],
        extraction_timeout: float | None = 120.0,
        min_text_length: int = 50,
    ) -> None:
        self._store = document_store
        self._bus = status_bus
        self._ingestion = ingestion_service
        self._extractors = {e.source_type: e for e in extractors}
        self._extraction_timeout = extraction_timeout
        self._min_text_length = min_text_length
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def supports(self, source_type: SourceType) -> bool:
        return source_type in self._extractors

    async def register(
        self,
        filename: str,
        source_type: SourceType,
        document_id: str | None = None,
    ) -> DocumentRecord:
        """Create the record in the ``uploaded`` state and announce it."""
        if not self.supports(source_type):
            raise PipelineError(message=f"No extractor configured for {source_type.value}")
        record = DocumentRecord(
            id=document_id or str(uuid.uuid4()),
            filename=filename,
            source_type=source_type,
        )
        record = await self._store.create(record)
        self._logger.info(
            "document_registered",
            document_id=record.id,
            filename=filename,
            source_type=source_type.value,
        )
        await self._bus.publish(uploaded_event(record.id, filename))
        return record

    async def process(self, document_id: str, payload: bytes | str) -> DocumentRecord | None:
        """Run extraction and ingestion for a registered document.

        Meant to run as a background task: failures are recorded on the
        document and published as a ``failed`` event rather than raised.
        Returns the final record, or ``None`` if the record was deleted
        while the job ran.
        """
        log = self._logger.bind(document_id=document_id)
        try:
            record = await self._require(document_id)
            extractor = self._extractors.get(record.source_type)
            if extractor is None:
                raise PipelineError(
                    message=f"No extractor configured for {record.source_type.value}"
                )

            record = await self._advance(record, JobStatus.PROCESSING, "Extracting text...")
            extracted = await with_timeout(
                extractor.extract(payload),
                self._extraction_timeout,
                stage="text extraction",
                provider_name=extractor.get_provider_name(),
            )
            text = extracted.text.strip()
            log.info("document_text_extracted", text_length=len(text))
            if len(text) < self._min_text_length:
                raise ExtractionError(
                    message="No meaningful text could be extracted",
                    provider_name=extractor.get_provider_name(),
                )

            record = await self._require(document_id)
            record = await self._advance(
                record,
                JobStatus.ANALYZING,
                "Adding to AI knowledge base...",
                text_length=len(text),
            )
            result = await self._ingestion.ingest(
                source_id=document_id,
                source_name=extracted.title or record.filename,
                source_type=record.source_type,
                content=text,
                uploaded_at=record.created_at,
                checkpoint=self._checkpoint(document_id),
            )

            record = await self._require(document_id)
            record = record.transition(JobStatus.COMPLETED, chunk_count=result.chunks_created)
            record = await self._store.update(record)
            await self._bus.publish(
                completed_event(
                    document_id,
                    {
                        "type": _TYPE_LABELS[record.source_type],
                        "confidence": 1.0,
                        "text_length": len(text),
                        "rag_chunks": result.chunks_created,
                        "filename": record.filename,
                    },
                )
            )
            log.info(
                "document_processing_completed",
                chunks=result.chunks_created,
                elapsed=round(result.ingestion_time, 2),
            )
            return record

        except DocumentNotFoundError:
            log.warning("document_deleted_during_processing")
            await self._bus.publish(failed_event(document_id, _DELETED_MESSAGE))
            return None
        except Exception as exc:
            return await self._fail(document_id, exc)

    async def delete(self, document_id: str) -> int:
        """Remove a document record and its indexed chunks.

        The record goes first so an in-flight job stops at its next
        checkpoint.  Returns the number of chunks removed.

        Raises
        ------
        DocumentNotFoundError
            If no such record exists.
        """
        if not await self._store.delete(document_id):
            raise DocumentNotFoundError(message=f"Document not found: {document_id}")
        removed = await self._ingestion.remove_source(document_id)
        self._logger.info("document_deleted", document_id=document_id, chunks_deleted=removed)
        return removed

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _require(self, document_id: str) -> DocumentRecord:
        record = await self._store.get(document_id)
        if record is None:
            raise DocumentNotFoundError(message=_DELETED_MESSAGE)
        return record

    def _checkpoint(self, document_id: str) -> Checkpoint:
        async def checkpoint(stage: str) -> None:
            self._logger.debug("document_checkpoint", document_id=document_id, stage=stage)
            await self._require(document_id)

        return checkpoint

    async def _advance(
        self,
        record: DocumentRecord,
        status: JobStatus,
        message: str,
        **updates: Any,
    ) -> DocumentRecord:
        record = await self._store.update(record.transition(status, **updates))
        if status is JobStatus.PROCESSING:
            await self._bus.publish(processing_event(record.id, message))
        else:
            await self._bus.publish(analyzing_event(record.id, message))
        return record

    async def _fail(self, document_id: str, exc: Exception) -> DocumentRecord | None:
        if isinstance(exc, GroundwriterError):
            error = exc.message
        else:
            error = str(exc) or type(exc).__name__
        self._logger.error(
            "document_processing_failed",
            document_id=document_id,
            error=error,
            error_type=type(exc).__name__,
        )

        stored: DocumentRecord | None = None
        record = await self._store.get(document_id)
        if record is not None and not record.status.is_terminal:
            try:
                stored = await self._store.update(
                    record.transition(JobStatus.FAILED, error_message=error)
                )
            except DocumentNotFoundError:
                self._logger.warning("document_deleted_before_failure_recorded", document_id=document_id)
        await self._bus.publish(failed_event(document_id, error))
        return stored
