"""Abstract base class for the job/document record store.

The record store is the source of truth for processing state.  Status
events are best-effort hints layered on top of it; a client that missed
events reads the record instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from groundwriter.models.jobs import DocumentRecord


# Concrete implementation: SQLiteDocumentStore (groundwriter/providers/document_store/)
class IDocumentStore(ABC):
    """Contract for persisting :class:`DocumentRecord` rows by id."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables if they do not exist."""

    @abstractmethod
    async def create(self, record: DocumentRecord) -> DocumentRecord:
        """Insert a new record and return it."""

    @abstractmethod
    async def get(self, document_id: str) -> DocumentRecord | None:
        """Return the record or ``None`` when it does not exist."""

    @abstractmethod
    async def update(self, record: DocumentRecord) -> DocumentRecord:
        """Overwrite an existing record.

        Raises
        ------
        groundwriter.utils.errors.DocumentNotFoundError
            If no record with ``record.id`` exists (e.g. it was deleted).
        """

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete the record; return ``False`` if it did not exist."""

    @abstractmethod
    async def list_recent(self, limit: int = 50) -> list[DocumentRecord]:
        """Return records, most recently updated first."""
