"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
The collection uses cosine distance; vectors are always computed by the
injected embedding provider upstream, so the collection is created without
an embedding function of its own.

The chromadb client is synchronous.  Every call runs in a worker thread
via ``asyncio.to_thread`` so the event loop stays responsive and callers
can put a deadline on it.
"""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from typing import Any

# Must be set before chromadb is imported.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from groundwriter.interfaces.vector_store_provider import IVectorStoreProvider
from groundwriter.models.rag import CorpusStats, DocumentChunk, RetrievedChunk, SourceType
from groundwriter.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

# Keeps metadata pages under SQLite's bind-parameter ceiling.
_PAGE_SIZE = 5000


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        Directory for the on-disk store.  ``None`` creates an in-memory
        (ephemeral) client, which tests use.
    collection_name:
        Name of the collection holding every source's chunks.
    """

    def __init__(
        self,
        persist_directory: str | None = "./data/chromadb",
        collection_name: str = "groundwriter_sources",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        client_settings = chromadb.config.Settings(anonymized_telemetry=False)
        if persist_directory is None:
            self._client = chromadb.EphemeralClient(settings=client_settings)
        else:
            self._client = chromadb.PersistentClient(
                path=persist_directory,
                settings=client_settings,
            )
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )
        logger.info(
            "chromadb_collection_ready",
            collection=collection_name,
            persist_dir=persist_directory or ":memory:",
            chunks=self._collection.count(),
        )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Upsert chunks keyed by ``chunk_id``."""
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"chunks and embeddings length mismatch: {len(chunks)} != {len(embeddings)}"
            )
        if not chunks:
            return 0

        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=[c.chunk_id for c in chunks],
                embeddings=embeddings,
                documents=[c.text for c in chunks],
                metadatas=[c.to_metadata() for c in chunks],
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_add_chunks", count=len(chunks), source_id=chunks[0].source_id)
        return len(chunks)

    async def query(
        self,
        query_embedding: list[float],
        top_k: int = 6,
        filters: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Return the *top_k* nearest chunks, most similar first."""
        try:
            return await asyncio.to_thread(self._query_sync, query_embedding, top_k, filters)
        except RAGError:
            raise
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_by_source(self, source_id: str) -> int:
        """Delete all chunks of *source_id*; unknown ids delete nothing."""
        try:
            count = await asyncio.to_thread(self._delete_sync, source_id)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete_by_source failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_source", source_id=source_id, deleted_count=count)
        return count

    async def get_stats(self) -> CorpusStats:
        """Count chunks and deduplicate ``source_id`` over paged metadata."""
        try:
            return await asyncio.to_thread(self._stats_sync)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        return self._collection is not None

    # ------------------------------------------------------------------
    # Synchronous bodies (run in a worker thread)
    # ------------------------------------------------------------------

    def _query_sync(
        self,
        query_embedding: list[float],
        top_k: int,
        filters: dict[str, Any] | None,
    ) -> list[RetrievedChunk]:
        count = self._collection.count()
        if count == 0 or top_k <= 0:
            return []

        kwargs: dict[str, Any] = {
            "query_embeddings": [query_embedding],
            "n_results": min(top_k, count),
            "include": ["documents", "metadatas", "distances"],
        }
        where_clause = self._translate_filters(filters)
        if where_clause:
            kwargs["where"] = where_clause

        results = self._collection.query(**kwargs)
        if not results["documents"] or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(documents)

        retrieved = [
            RetrievedChunk(
                chunk=self._metadata_to_chunk(meta, text),
                similarity_score=max(0.0, min(1.0, 1.0 - distance)),
            )
            for text, meta, distance in zip(documents, metadatas, distances, strict=True)
        ]
        logger.debug(
            "chromadb_query",
            results_count=len(retrieved),
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved

    def _delete_sync(self, source_id: str) -> int:
        existing = self._collection.get(where={"source_id": source_id}, include=[])
        ids = existing["ids"] or []
        if ids:
            self._collection.delete(ids=ids)
        return len(ids)

    def _stats_sync(self) -> CorpusStats:
        total = self._collection.count()
        source_ids: set[str] = set()
        for offset in range(0, total, _PAGE_SIZE):
            page = self._collection.get(include=["metadatas"], limit=_PAGE_SIZE, offset=offset)
            for meta in page["metadatas"] or []:
                sid = meta.get("source_id")
                if sid:
                    source_ids.add(sid)
        return CorpusStats(total_chunks=total, unique_sources=len(source_ids))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _translate_filters(filters: dict[str, Any] | None) -> dict[str, Any] | None:
        """Translate the interface filter dict into a chromadb ``where`` clause."""
        if not filters:
            return None
        clauses: list[dict[str, Any]] = []
        for key, value in filters.items():
            if isinstance(value, dict):
                clauses.append({key: value})
            else:
                clauses.append({key: {"$eq": value}})
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _metadata_to_chunk(meta: dict[str, Any], text: str) -> DocumentChunk:
        uploaded_raw = meta.get("uploaded_at")
        extra: dict[str, Any] = {}
        if uploaded_raw:
            extra["uploaded_at"] = datetime.fromisoformat(str(uploaded_raw))
        source_id = str(meta.get("source_id", ""))
        chunk_index = int(meta.get("chunk_index", 0))
        return DocumentChunk(
            chunk_id=str(meta.get("chunk_id") or DocumentChunk.make_id(source_id, chunk_index)),
            text=text,
            chunk_index=chunk_index,
            total_chunks=max(1, int(meta.get("total_chunks", 1))),
            chunk_size=int(meta.get("chunk_size", len(text))),
            source_id=source_id,
            source_name=str(meta.get("source_name", source_id)),
            source_type=SourceType(meta.get("source_type", SourceType.PDF.value)),
            **extra,
        )
