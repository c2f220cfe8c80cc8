"""Public interface definitions for all external collaborators.

Every external service is reached through the abstract base classes in
this package; concrete adapters are injected at startup in
``groundwriter/main.py`` and tests substitute fakes.

    Interface               →  Concrete implementation
    ─────────────────────────────────────────────────────────────
    ILLMProvider            →  OpenAILLMProvider
    IEmbeddingProvider      →  OpenAIEmbeddingProvider
    IVectorStoreProvider    →  ChromaDBProvider
    IDocumentStore          →  SQLiteDocumentStore
    ISourceExtractor        →  PDFExtractor, URLExtractor, ScreenshotExtractor
"""

from groundwriter.interfaces.document_store import IDocumentStore
from groundwriter.interfaces.embedding_provider import IEmbeddingProvider
from groundwriter.interfaces.llm_provider import ILLMProvider
from groundwriter.interfaces.source_extractor import ExtractedText, ISourceExtractor
from groundwriter.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ExtractedText",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "ISourceExtractor",
    "IVectorStoreProvider",
]
