"""Screenshot text extractor using a vision-capable LLM."""

from __future__ import annotations

import structlog

from groundwriter.interfaces.llm_provider import ILLMProvider
from groundwriter.interfaces.source_extractor import ExtractedText, ISourceExtractor
from groundwriter.models.rag import SourceType
from groundwriter.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_VISION_PROMPT = """\
Extract ALL readable text from this screenshot, in natural reading order.
Keep paragraphs separated by blank lines and keep list items on their own
lines. Do not describe images, layout or colours. Do not add commentary.
If there is no readable text, reply with an empty string."""


class ScreenshotExtractor(ISourceExtractor):
    """Reads the text content of an image through the LLM's vision input."""

    def __init__(self, llm: ILLMProvider) -> None:
        self._llm = llm

    @property
    def source_type(self) -> SourceType:
        return SourceType.SCREENSHOT

    async def extract(self, payload: bytes | str) -> ExtractedText:
        if not isinstance(payload, (bytes, bytearray)):
            raise ExtractionError(
                message="Screenshot extraction expects raw image bytes",
                provider_name=self.get_provider_name(),
            )
        if not self._llm.supports_vision():
            raise ExtractionError(
                message="Configured LLM has no vision support",
                provider_name=self.get_provider_name(),
            )
        text = await self._llm.vision_extract(bytes(payload), _VISION_PROMPT)
        text = text.strip()
        logger.info("screenshot_text_extracted", text_length=len(text))
        return ExtractedText(text=text)

    def get_provider_name(self) -> str:
        return f"vision:{self._llm.get_provider_name()}"
