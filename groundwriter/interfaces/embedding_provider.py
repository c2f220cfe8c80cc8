"""Abstract base class for text-embedding service providers.

Defines the contract for turning chunk text and questions into vectors.
The ingestion pipeline embeds chunks batch by batch; the query engine
embeds one question per request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (groundwriter/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the RAG pipeline.

    Embeddings are consumed by
    :class:`~groundwriter.interfaces.vector_store_provider.IVectorStoreProvider`
    for indexing and query-time similarity search.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings.  Implementations split the batch
            further if the backing API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        groundwriter.utils.errors.RAGError
            If the embedding API call fails.
        groundwriter.utils.errors.RateLimitError
            If the provider rejected the call for rate limiting.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one string (typically a question)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the (constant) dimensionality of the vectors, e.g. ``1536``."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return an identifier such as ``"openai-text-embedding-3-small"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are present (no network probe)."""
