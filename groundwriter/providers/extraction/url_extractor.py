"""Web page extractor using httpx and trafilatura.

Fetches raw HTML with httpx and lets trafilatura strip navigation, ads
and boilerplate down to the main article text.  Parsing runs in a worker
thread so large pages do not stall the event loop.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import structlog
import trafilatura

from groundwriter.interfaces.source_extractor import ExtractedText, ISourceExtractor
from groundwriter.models.rag import SourceType
from groundwriter.utils.errors import ExtractionError, ServiceTimeoutError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 15.0
_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; groundwriter/0.1)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


class URLExtractor(ISourceExtractor):
    """Article text extraction backed by httpx + trafilatura."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(_DEFAULT_TIMEOUT),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )

    @property
    def source_type(self) -> SourceType:
        return SourceType.URL

    async def extract(self, payload: bytes | str) -> ExtractedText:
        url = payload.decode() if isinstance(payload, (bytes, bytearray)) else payload
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ServiceTimeoutError(
                message=f"Timeout fetching {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise ExtractionError(
                message=f"HTTP {exc.response.status_code} for {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"HTTP error fetching {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        text, title = await asyncio.to_thread(self._parse, response.text, url)

        logger.info("url_text_extracted", url=url, title=title, text_length=len(text))
        return ExtractedText(text=text, title=title)

    def get_provider_name(self) -> str:
        return "web_scraper"

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @classmethod
    def _parse(cls, html: str, url: str) -> tuple[str, str]:
        text = trafilatura.extract(html, include_comments=False, include_tables=True) or ""
        return text, cls._extract_title(html, url)

    @staticmethod
    def _extract_title(html: str, url: str) -> str:
        metadata = trafilatura.extract(
            html,
            include_comments=False,
            output_format="json",
            with_metadata=True,
        )
        if not metadata:
            return ""
        try:
            return json.loads(metadata).get("title") or ""
        except json.JSONDecodeError:
            logger.debug("url_metadata_parse_failed", url=url)
            return ""
