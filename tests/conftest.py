"""Shared pytest fixtures for the groundwriter test suite."""

from __future__ import annotations

import hashlib
import struct
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from groundwriter.config.settings import Settings
from groundwriter.interfaces.document_store import IDocumentStore
from groundwriter.interfaces.embedding_provider import IEmbeddingProvider
from groundwriter.interfaces.llm_provider import ILLMProvider
from groundwriter.interfaces.vector_store_provider import IVectorStoreProvider
from groundwriter.models.jobs import DocumentRecord
from groundwriter.models.rag import CorpusStats, DocumentChunk, RetrievedChunk
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.services.ingestion.chunker import TextChunker
from groundwriter.services.ingestion.ingestion_service import IngestionService
from groundwriter.utils.errors import DocumentNotFoundError

# ---------------------------------------------------------------------------
# Deterministic embedding + in-memory vector store
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic unit vector derived from SHA-256 of *text*."""
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    values = [
        v / 2**31 - 1.0 for v in struct.unpack(f"<{dim}I", raw[: dim * 4])
    ]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider; records every call."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append([text])
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """Dict-backed vector store ranking by dot product of unit vectors."""

    def __init__(self) -> None:
        self._store: dict[str, tuple[DocumentChunk, list[float]]] = {}

    @property
    def chunks(self) -> list[DocumentChunk]:
        return [chunk for chunk, _ in self._store.values()]

    async def add_chunks(
        self,
        chunks: list[DocumentChunk],
        embeddings: list[list[float]],
    ) -> int:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings length mismatch")
        for chunk, emb in zip(chunks, embeddings):
            self._store[chunk.chunk_id] = (chunk, emb)
        return len(chunks)

    async def query(
        self,
        query_embedding: list[float],
        top_k: int = 6,
        filters: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        scored: list[tuple[float, DocumentChunk]] = []
        for chunk, vec in self._store.values():
            if filters and any(chunk.to_metadata().get(k) != v for k, v in filters.items()):
                continue
            dot = sum(a * b for a, b in zip(query_embedding, vec))
            scored.append((max(0.0, min(1.0, (dot + 1.0) / 2.0)), chunk))
        scored.sort(key=lambda x: x[0], reverse=True)
        return [RetrievedChunk(chunk=c, similarity_score=s) for s, c in scored[:top_k]]

    async def delete_by_source(self, source_id: str) -> int:
        doomed = [cid for cid, (c, _) in self._store.items() if c.source_id == source_id]
        for cid in doomed:
            del self._store[cid]
        return len(doomed)

    async def get_stats(self) -> CorpusStats:
        return CorpusStats(
            total_chunks=len(self._store),
            unique_sources=len({c.source_id for c, _ in self._store.values()}),
        )

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# In-memory document store
# ---------------------------------------------------------------------------


class InMemoryDocumentStore(IDocumentStore):
    """Dict-backed :class:`IDocumentStore` with the SQLite store's semantics."""

    def __init__(self) -> None:
        self.records: dict[str, DocumentRecord] = {}
        self.history: list[DocumentRecord] = []

    async def initialize(self) -> None:
        return None

    async def create(self, record: DocumentRecord) -> DocumentRecord:
        self.records[record.id] = record
        self.history.append(record)
        return record

    async def get(self, document_id: str) -> DocumentRecord | None:
        return self.records.get(document_id)

    async def update(self, record: DocumentRecord) -> DocumentRecord:
        if record.id not in self.records:
            raise DocumentNotFoundError(message=f"Document not found: {record.id}")
        self.records[record.id] = record
        self.history.append(record)
        return record

    async def delete(self, document_id: str) -> bool:
        return self.records.pop(document_id, None) is not None

    async def list_recent(self, limit: int = 50) -> list[DocumentRecord]:
        ordered = sorted(self.records.values(), key=lambda r: r.updated_at, reverse=True)
        return ordered[:limit]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def status_bus() -> JobStatusBus:
    return JobStatusBus()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider; override ``complete.return_value`` / ``side_effect``."""
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.supports_vision.return_value = True
    mock.complete = AsyncMock(return_value="Generated answer.")
    mock.vision_extract = AsyncMock(return_value="Text read from the screenshot.")
    return mock


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Awaitable stand-in for ``asyncio.sleep`` that records its delays."""
    return AsyncMock(return_value=None)


@pytest.fixture
def ingestion_service(
    mock_embedding_provider: MockEmbeddingProvider,
    mock_vector_store: MockVectorStore,
    no_sleep: AsyncMock,
) -> IngestionService:
    return IngestionService(
        chunker=TextChunker(),
        embedding_provider=mock_embedding_provider,
        vector_store=mock_vector_store,
        sleep=no_sleep,
    )


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with a dummy key and storage under ``tmp_path``."""
    return Settings(
        openai_api_key="sk-test-key",
        chromadb_persist_dir=str(tmp_path / "chromadb"),
        document_db_path=str(tmp_path / "documents.db"),
        ingest_batch_delay=0.0,
        status_heartbeat_interval=0.05,
    )


@pytest.fixture
def sample_article_text() -> str:
    """Multi-paragraph prose used across chunking and ingestion tests."""
    return (
        "Community gardens change the way neighbourhoods use vacant land. "
        "A single lot can feed dozens of households through a season, and "
        "the shared work builds relationships that outlast the harvest.\n\n"
        "Soil testing comes first. Urban lots often carry lead or other "
        "contaminants from old paint and traffic, so most organisers build "
        "raised beds filled with imported soil and compost. The beds also "
        "make the garden accessible to older volunteers.\n\n"
        "Water access is the second constraint. Some cities allow gardens "
        "to tap fire hydrants with a permit; others rely on rain barrels "
        "and donated tanks. A drip line on a timer saves both water and "
        "volunteer hours during the hottest weeks.\n\n"
        "Governance matters as much as horticulture. Successful gardens "
        "publish simple plot rules, hold an annual meeting, and keep a "
        "waiting list so that abandoned plots are reassigned quickly. "
        "Written agreements with the landowner protect the garden when the "
        "property changes hands."
    )
