"""Embedding provider implementations.

Embeddings convert chunk text and questions into vectors stored in and
searched against ChromaDB.

    OpenAIEmbeddingProvider — text-embedding-3-small (1536 dims) or any
    OpenAI-compatible embeddings endpoint.
"""

from groundwriter.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
