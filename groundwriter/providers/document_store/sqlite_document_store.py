"""SQLite-backed job/document record store.

Persists :class:`DocumentRecord` rows to a local SQLite database
(``data/documents.db`` by default).  Uses ``aiosqlite`` for async I/O.
Each operation opens its own short-lived connection.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from groundwriter.interfaces.document_store import IDocumentStore
from groundwriter.models.jobs import DocumentRecord, JobStatus
from groundwriter.models.rag import SourceType
from groundwriter.utils.errors import DocumentNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id            TEXT PRIMARY KEY,
    filename      TEXT NOT NULL,
    source_type   TEXT NOT NULL,
    status        TEXT NOT NULL,
    error_message TEXT,
    text_length   INTEGER,
    chunk_count   INTEGER,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
"""

_CREATE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_documents_updated ON documents(updated_at);"
)

_INSERT_SQL = """\
INSERT INTO documents
    (id, filename, source_type, status, error_message, text_length,
     chunk_count, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_SQL = """\
UPDATE documents
SET filename = ?, source_type = ?, status = ?, error_message = ?,
    text_length = ?, chunk_count = ?, updated_at = ?
WHERE id = ?;
"""

_SELECT_COLUMNS = (
    "id, filename, source_type, status, error_message, text_length, "
    "chunk_count, created_at, updated_at"
)


class SQLiteDocumentStore(IDocumentStore):
    """SQLite persistence for document records."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and index if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(_CREATE_INDEX_SQL)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def create(self, record: DocumentRecord) -> DocumentRecord:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _INSERT_SQL,
                (
                    record.id,
                    record.filename,
                    record.source_type.value,
                    record.status.value,
                    record.error_message,
                    record.text_length,
                    record.chunk_count,
                    record.created_at.isoformat(),
                    record.updated_at.isoformat(),
                ),
            )
            await db.commit()
        logger.info("document_created", document_id=record.id, filename=record.filename)
        return record

    async def get(self, document_id: str) -> DocumentRecord | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM documents WHERE id = ?;",
                (document_id,),
            )
            row = await cursor.fetchone()
        return self._row_to_record(row) if row else None

    async def update(self, record: DocumentRecord) -> DocumentRecord:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                _UPDATE_SQL,
                (
                    record.filename,
                    record.source_type.value,
                    record.status.value,
                    record.error_message,
                    record.text_length,
                    record.chunk_count,
                    record.updated_at.isoformat(),
                    record.id,
                ),
            )
            await db.commit()
            updated = cursor.rowcount
        if not updated:
            raise DocumentNotFoundError(
                message=f"Document {record.id} no longer exists",
                provider_name="sqlite",
            )
        logger.debug("document_updated", document_id=record.id, status=record.status.value)
        return record

    async def delete(self, document_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM documents WHERE id = ?;", (document_id,))
            await db.commit()
            deleted = cursor.rowcount
        logger.info("document_deleted", document_id=document_id, existed=bool(deleted))
        return bool(deleted)

    async def list_recent(self, limit: int = 50) -> list[DocumentRecord]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM documents ORDER BY updated_at DESC LIMIT ?;",
                (limit,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_record(r) for r in rows]

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> DocumentRecord:
        return DocumentRecord(
            id=row["id"],
            filename=row["filename"],
            source_type=SourceType(row["source_type"]),
            status=JobStatus(row["status"]),
            error_message=row["error_message"],
            text_length=row["text_length"],
            chunk_count=row["chunk_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
