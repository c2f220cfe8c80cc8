"""Vector store provider implementations.

ChromaDB is the sole vector store implementation: chunk vectors persist
on disk at ``CHROMADB_PERSIST_DIR`` and are searched by cosine similarity
with optional metadata filters.
"""

from groundwriter.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
