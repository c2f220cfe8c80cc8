"""Abstract base class for vector-store service providers.

The store persists (vector, chunk text, metadata) tuples and answers
top-k similarity queries.  Ranking and the similarity metric belong to
the backend; the adapter only shapes the request and the result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from groundwriter.models.rag import CorpusStats, DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (groundwriter/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by the RAG pipeline.

    **Supported filter syntax** (the *filters* dict of :meth:`query`):

    * ``{"source_id": "doc-1"}`` — equality on a metadata field.
    * ``{"source_type": {"$in": ["pdf", "url"]}}`` — membership.
    * Several keys are combined with AND.
    """

    @abstractmethod
    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        """Upsert pre-embedded chunks, keyed by ``chunk_id``.

        Returns
        -------
        int
            The number of chunks written.

        Raises
        ------
        ValueError
            If ``len(chunks) != len(embeddings)``.
        groundwriter.utils.errors.RAGError
            If the store operation fails.
        """

    @abstractmethod
    async def query(
        self,
        query_embedding: list[float],
        top_k: int = 6,
        filters: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Return up to *top_k* chunks nearest to *query_embedding*.

        Results are ranked by similarity score, descending.  An empty
        store yields an empty list, not an error.

        Raises
        ------
        groundwriter.utils.errors.RAGError
            If the backend query fails.
        """

    @abstractmethod
    async def delete_by_source(self, source_id: str) -> int:
        """Delete every chunk of *source_id* and return how many were removed.

        Unknown ids are a no-op returning ``0``.
        """

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        """Return total chunk count and the number of distinct ``source_id`` values."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is initialised and usable."""
