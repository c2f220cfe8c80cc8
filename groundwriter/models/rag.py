"""RAG data models: sources, chunks, retrieval results, corpus statistics.

All models use frozen config.  A :class:`DocumentChunk` is owned by
exactly one source; re-ingesting or removing the source deletes every
chunk carrying its ``source_id``.

Overview:
    1. INGESTION: extracted text is split into overlapping chunks.
    2. EMBEDDING: each chunk becomes a vector.
    3. STORAGE: chunk text + vector + metadata go to ChromaDB.
    4. RETRIEVAL: a question is embedded and the nearest chunks returned.
    5. GENERATION: the retrieved chunks become the LLM's context block.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class SourceType(str, Enum):
    """Kinds of user content that can be ingested."""

    PDF = "pdf"
    URL = "url"
    SCREENSHOT = "screenshot"


# ---------------------------------------------------------------------------
# Source — a unit of user-supplied content.
# ---------------------------------------------------------------------------
class Source(BaseModel):
    """A user-supplied content source, immutable once created."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(min_length=1, description="Stable unique identifier.")
    source_name: str = Field(description="Human-readable name shown in citations.")
    source_type: SourceType = Field(description="pdf, url or screenshot.")
    uploaded_at: datetime = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# DocumentChunk — the unit of embedding and retrieval.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A bounded slice of a source's extracted text.

    ``chunk_index`` is a dense 0-based sequence within one ingestion and
    ``total_chunks`` is identical across all chunks of that ingestion.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description='"{source_id}_chunk_{chunk_index}".')
    text: str = Field(description="The chunk's textual content.")
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    chunk_size: int = Field(ge=0, description="Character length of ``text``.")
    source_id: str
    source_name: str
    source_type: SourceType
    uploaded_at: datetime = Field(default_factory=utc_now)

    @staticmethod
    def make_id(source_id: str, chunk_index: int) -> str:
        return f"{source_id}_chunk_{chunk_index}"

    def to_metadata(self) -> dict[str, str | int]:
        """Flatten to the scalar metadata dict stored beside the vector."""
        return {
            "chunk_id": self.chunk_id,
            "chunk_index": self.chunk_index,
            "total_chunks": self.total_chunks,
            "chunk_size": self.chunk_size,
            "source_id": self.source_id,
            "source_name": self.source_name,
            "source_type": self.source_type.value,
            "uploaded_at": self.uploaded_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# RetrievedChunk — a search result from the vector store.
# ---------------------------------------------------------------------------
class RetrievedChunk(BaseModel):
    """A :class:`DocumentChunk` with the similarity score of one query."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    similarity_score: float = Field(
        description="1 - cosine distance; higher is more similar."
    )


class RAGResponse(BaseModel):
    """Answer produced by the retrieval-augmented query engine."""

    model_config = ConfigDict(frozen=True)

    text: str
    sources: list[str] = Field(
        default_factory=list,
        description="Source names of the retrieved chunks, deduplicated in rank order.",
    )
    source_documents: list[RetrievedChunk] = Field(default_factory=list)


class GenerationResult(BaseModel):
    """Output of the writing service, grounded or not.

    ``retrieval_used`` is ``False`` when the answer came from the direct
    (non-retrieval) model call; ``notice`` then explains why.
    """

    model_config = ConfigDict(frozen=True)

    text: str
    title: str | None = None
    sources: list[str] = Field(default_factory=list)
    source_documents: list[RetrievedChunk] = Field(default_factory=list)
    retrieval_used: bool = True
    notice: str | None = None


class IngestionResult(BaseModel):
    """Summary of one completed ingestion."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    source_name: str
    chunks_created: int = Field(ge=0)
    average_chunk_size: int = Field(default=0, ge=0)
    ingestion_time: float = Field(default=0.0, ge=0.0, description="Seconds.")


class CorpusStats(BaseModel):
    """Vector index totals."""

    model_config = ConfigDict(frozen=True)

    total_chunks: int = Field(default=0, ge=0)
    unique_sources: int = Field(default=0, ge=0)
