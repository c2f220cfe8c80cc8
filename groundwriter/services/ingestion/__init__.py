"""Document ingestion pipeline.

Orchestrates: **trim -> chunk -> tag -> delete existing -> embed -> store**.

1. **Chunk** (chunker.py / TextChunker) -- recursive character splitting
   into ~1000-character chunks with ~200 characters of overlap.
2. **Tag** -- each chunk carries its source id, name, type, upload time,
   index, total count and size.
3. **Embed** (via IEmbeddingProvider) and **Store** (via
   IVectorStoreProvider) -- batch by batch, with a short delay between
   batches.
"""

from groundwriter.services.ingestion.chunker import ChunkSpan, TextChunker
from groundwriter.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "ChunkSpan",
    "IngestionService",
    "TextChunker",
]
