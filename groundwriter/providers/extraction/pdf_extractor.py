"""PDF text extractor backed by PyMuPDF (fitz).

Reads the uploaded bytes in memory, extracts text page by page and joins
pages with blank lines so the chunker sees page breaks as paragraph
boundaries.  Scanned PDFs without a text layer yield empty text, which
the document processor rejects as too short.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from groundwriter.interfaces.source_extractor import ExtractedText, ISourceExtractor
from groundwriter.models.rag import SourceType
from groundwriter.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFExtractor(ISourceExtractor):
    """Extracts the text layer of a PDF document."""

    @property
    def source_type(self) -> SourceType:
        return SourceType.PDF

    async def extract(self, payload: bytes | str) -> ExtractedText:
        if not isinstance(payload, (bytes, bytearray)):
            raise ExtractionError(
                message="PDF extraction expects raw file bytes",
                provider_name=self.get_provider_name(),
            )
        return await asyncio.to_thread(self._extract_sync, bytes(payload))

    def get_provider_name(self) -> str:
        return "pymupdf"

    def _extract_sync(self, data: bytes) -> ExtractedText:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                pages = [page.get_text("text").strip() for page in doc]
                title = (doc.metadata or {}).get("title") or ""
                page_count = doc.page_count
        except (RuntimeError, ValueError) as exc:
            raise ExtractionError(
                message=f"Could not read PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text = "\n\n".join(p for p in pages if p)
        logger.info(
            "pdf_text_extracted",
            pages=page_count,
            text_length=len(text),
        )
        return ExtractedText(text=text, title=title, page_count=page_count)
