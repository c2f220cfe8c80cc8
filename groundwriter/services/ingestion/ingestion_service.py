"""Ingestion pipeline: trim -> chunk -> tag -> delete existing -> embed + store.

Ingestion is idempotent per ``source_id``: every run first deletes the
chunks a previous run left behind, so the index holds exactly the chunk
set of the latest ingestion.

Deletion and the batched inserts are separate steps.  A failure part way
through leaves the source with zero or some of its chunks; the repair is
to ingest the source again, which always deletes first.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable

import structlog

from groundwriter.interfaces.embedding_provider import IEmbeddingProvider
from groundwriter.interfaces.vector_store_provider import IVectorStoreProvider
from groundwriter.models.rag import (
    CorpusStats,
    DocumentChunk,
    IngestionResult,
    SourceType,
    utc_now,
)
from groundwriter.services.ingestion.chunker import TextChunker
from groundwriter.utils.errors import IngestionError, RAGError
from groundwriter.utils.timeouts import with_timeout

logger = structlog.get_logger(logger_name=__name__)

# Called with a stage label before each external step; raising aborts the run.
Checkpoint = Callable[[str], Awaitable[None]]


class IngestionService:
    """Orchestrates chunking, embedding and storage for one source at a time.

    Parameters
    ----------
    chunker:
        Splits trimmed content into chunk strings.
    embedding_provider:
        Turns chunk text into vectors.
    vector_store:
        Receives the chunks and vectors.
    batch_size:
        Chunks embedded and stored per round trip (default 10).
    batch_delay:
        Seconds to wait between batches, easing upstream rate limits.
    embedding_timeout / vector_store_timeout:
        Deadlines in seconds for each embedding and store call.
    sleep:
        Coroutine used for the inter-batch delay; tests inject a fake.
    """

    def __init__(
        self,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        batch_size: int = 10,
        batch_delay: float = 0.1,
        embedding_timeout: float | None = 60.0,
        vector_store_timeout: float | None = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._embedding_timeout = embedding_timeout
        self._vector_store_timeout = vector_store_timeout
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        source_id: str,
        source_name: str,
        source_type: SourceType | str,
        content: str,
        uploaded_at: datetime | None = None,
        checkpoint: Checkpoint | None = None,
    ) -> IngestionResult:
        """Ingest *content* as the new chunk set of *source_id*.

        Returns
        -------
        IngestionResult
            ``chunks_created`` is the number of chunks written.

        Raises
        ------
        IngestionError
            If the content is empty or produces only blank chunks.  Raised
            before any external call.
        RAGError, RateLimitError, ServiceTimeoutError
            If embedding or storage fails; remaining batches are skipped.
        """
        start = time.monotonic()
        source_type = SourceType(source_type)
        chunks = self.build_chunks(
            source_id=source_id,
            source_name=source_name,
            source_type=source_type,
            content=content,
            uploaded_at=uploaded_at or utc_now(),
        )

        if checkpoint is not None:
            await checkpoint("delete_existing")
        removed = await self._delete_source(source_id)
        if removed:
            logger.info("ingestion_replaced_existing", source_id=source_id, removed=removed)

        total_stored = 0
        batch_count = (len(chunks) + self._batch_size - 1) // self._batch_size
        for batch_no, offset in enumerate(range(0, len(chunks), self._batch_size), start=1):
            if batch_no > 1 and self._batch_delay > 0:
                await self._sleep(self._batch_delay)
            if checkpoint is not None:
                await checkpoint(f"batch {batch_no}/{batch_count}")

            batch = chunks[offset : offset + self._batch_size]
            try:
                total_stored += await self._embed_and_store(batch, batch_no, batch_count)
            except Exception:
                logger.error(
                    "ingestion_batch_failed",
                    source_id=source_id,
                    batch=batch_no,
                    batches=batch_count,
                    stored_before_failure=total_stored,
                )
                raise

        elapsed = time.monotonic() - start
        result = IngestionResult(
            source_id=source_id,
            source_name=source_name,
            chunks_created=total_stored,
            average_chunk_size=round(sum(c.chunk_size for c in chunks) / len(chunks)),
            ingestion_time=round(elapsed, 3),
        )
        logger.info(
            "ingestion_complete",
            source_id=source_id,
            source_name=source_name,
            chunks=total_stored,
            batches=batch_count,
            time_s=result.ingestion_time,
        )
        return result

    def build_chunks(
        self,
        source_id: str,
        source_name: str,
        source_type: SourceType,
        content: str,
        uploaded_at: datetime | None = None,
    ) -> list[DocumentChunk]:
        """Trim, split and tag *content*; no external calls.

        Content shorter than the chunker's minimum length becomes one
        chunk equal to the trimmed text.  Every chunk gets the same
        *uploaded_at*, defaulting to now.
        """
        if not source_id:
            raise IngestionError(message="source_id is required")
        trimmed = (content or "").strip()
        if not trimmed:
            raise IngestionError(message=f"Source {source_id} has no content")

        if len(trimmed) < self._chunker.min_length:
            texts = [trimmed]
        else:
            texts = [t for t in self._chunker.split(trimmed) if t.strip()]
        if not texts:
            raise IngestionError(message=f"Source {source_id} produced only empty chunks")

        total = len(texts)
        uploaded_at = uploaded_at or utc_now()
        return [
            DocumentChunk(
                chunk_id=DocumentChunk.make_id(source_id, index),
                text=text,
                chunk_index=index,
                total_chunks=total,
                chunk_size=len(text),
                source_id=source_id,
                source_name=source_name,
                source_type=source_type,
                uploaded_at=uploaded_at,
            )
            for index, text in enumerate(texts)
        ]

    async def remove_source(self, source_id: str) -> int:
        """Delete every chunk of *source_id*; safe for unknown ids."""
        removed = await self._delete_source(source_id)
        logger.info("source_removed", source_id=source_id, chunks_deleted=removed)
        return removed

    async def get_corpus_stats(self) -> CorpusStats:
        return await with_timeout(
            self._vector_store.get_stats(),
            self._vector_store_timeout,
            stage="corpus stats",
            provider_name=self._vector_store.get_provider_name(),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _delete_source(self, source_id: str) -> int:
        return await with_timeout(
            self._vector_store.delete_by_source(source_id),
            self._vector_store_timeout,
            stage=f"deleting chunks of {source_id}",
            provider_name=self._vector_store.get_provider_name(),
        )

    async def _embed_and_store(
        self,
        batch: list[DocumentChunk],
        batch_no: int,
        batch_count: int,
    ) -> int:
        embeddings = await with_timeout(
            self._embedding_provider.embed([c.text for c in batch]),
            self._embedding_timeout,
            stage=f"embedding batch {batch_no}/{batch_count}",
            provider_name=self._embedding_provider.get_provider_name(),
        )
        if len(embeddings) != len(batch):
            raise RAGError(
                message=(
                    f"Embedding batch {batch_no}/{batch_count} returned "
                    f"{len(embeddings)} vectors for {len(batch)} chunks"
                ),
                provider_name=self._embedding_provider.get_provider_name(),
            )
        return await with_timeout(
            self._vector_store.add_chunks(batch, embeddings),
            self._vector_store_timeout,
            stage=f"storing batch {batch_no}/{batch_count}",
            provider_name=self._vector_store.get_provider_name(),
        )
