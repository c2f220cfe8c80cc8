"""Abstract base class for source text extractors.

Each :class:`~groundwriter.models.rag.SourceType` has one extractor that
turns raw input (PDF bytes, a URL, screenshot bytes) into plain text
ready for chunking.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from groundwriter.models.rag import SourceType


@dataclass(frozen=True)
class ExtractedText:
    """Plain text pulled from a source.

    Attributes
    ----------
    text:
        The extracted body text.
    title:
        A display name discovered during extraction (page title, PDF
        metadata title), or ``""`` if none.
    page_count:
        Number of pages for paged formats, else ``None``.
    """

    text: str
    title: str = ""
    page_count: int | None = None


class ISourceExtractor(ABC):
    """Contract for turning one kind of source into text."""

    @property
    @abstractmethod
    def source_type(self) -> SourceType:
        """The source type this extractor handles."""

    @abstractmethod
    async def extract(self, payload: bytes | str) -> ExtractedText:
        """Extract text from *payload* (bytes for files, a URL string for web pages).

        Raises
        ------
        groundwriter.utils.errors.ExtractionError
            If the payload cannot be read or yields no text.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this extractor."""
