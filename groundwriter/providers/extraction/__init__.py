"""Source text extractors, one per :class:`~groundwriter.models.rag.SourceType`.

    PDFExtractor        — PyMuPDF text layer
    URLExtractor        — httpx + trafilatura
    ScreenshotExtractor — LLM vision
"""

from groundwriter.providers.extraction.pdf_extractor import PDFExtractor
from groundwriter.providers.extraction.screenshot_extractor import ScreenshotExtractor
from groundwriter.providers.extraction.url_extractor import URLExtractor

__all__ = ["PDFExtractor", "ScreenshotExtractor", "URLExtractor"]
