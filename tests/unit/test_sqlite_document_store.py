"""Unit tests for SQLiteDocumentStore."""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio

from groundwriter.models.jobs import DocumentRecord, JobStatus
from groundwriter.models.rag import SourceType, utc_now
from groundwriter.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from groundwriter.utils.errors import DocumentNotFoundError


@pytest_asyncio.fixture
async def store(tmp_path) -> SQLiteDocumentStore:
    s = SQLiteDocumentStore(db_path=tmp_path / "nested" / "documents.db")
    await s.initialize()
    return s


def _record(doc_id: str = "doc-1", **kwargs) -> DocumentRecord:
    return DocumentRecord(id=doc_id, filename="notes.pdf", source_type=SourceType.PDF, **kwargs)


class TestSQLiteDocumentStore:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store: SQLiteDocumentStore) -> None:
        record = _record()
        await store.create(record)

        loaded = await store.get("doc-1")

        assert loaded == record

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: SQLiteDocumentStore) -> None:
        assert await store.get("nope") is None

    @pytest.mark.asyncio
    async def test_update_persists_transition(self, store: SQLiteDocumentStore) -> None:
        record = await store.create(_record())
        done = record.transition(JobStatus.COMPLETED, chunk_count=3, text_length=2500)

        await store.update(done)
        loaded = await store.get("doc-1")

        assert loaded.status is JobStatus.COMPLETED
        assert loaded.chunk_count == 3
        assert loaded.text_length == 2500
        assert loaded.created_at == record.created_at

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store: SQLiteDocumentStore) -> None:
        with pytest.raises(DocumentNotFoundError):
            await store.update(_record("ghost"))

    @pytest.mark.asyncio
    async def test_delete(self, store: SQLiteDocumentStore) -> None:
        await store.create(_record())
        assert await store.delete("doc-1") is True
        assert await store.delete("doc-1") is False
        assert await store.get("doc-1") is None

    @pytest.mark.asyncio
    async def test_list_recent_newest_first(self, store: SQLiteDocumentStore) -> None:
        now = utc_now()
        for i in range(3):
            await store.create(_record(f"doc-{i}", updated_at=now + timedelta(seconds=i)))

        recent = await store.list_recent(limit=2)

        assert [r.id for r in recent] == ["doc-2", "doc-1"]

    @pytest.mark.asyncio
    async def test_failed_record_keeps_error(self, store: SQLiteDocumentStore) -> None:
        record = await store.create(_record())
        await store.update(record.transition(JobStatus.FAILED, error_message="bad pdf"))
        loaded = await store.get("doc-1")
        assert loaded.status is JobStatus.FAILED
        assert loaded.error_message == "bad pdf"
