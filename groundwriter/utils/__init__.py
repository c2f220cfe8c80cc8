"""Utility modules for groundwriter.

- **errors** -- Domain exception hierarchy rooted at GroundwriterError;
  each component raises its own subclass so callers (and the API error
  middleware) can react to failures precisely.
- **logging** -- structlog setup: coloured console output in development,
  structured JSON in production.
- **timeouts** -- ``asyncio.wait_for`` wrapper that turns an expired
  deadline on an external call into :class:`ServiceTimeoutError`.
"""

from groundwriter.utils.errors import (
    ConfigurationError,
    DocumentNotFoundError,
    ExtractionError,
    GroundwriterError,
    IngestionError,
    InvalidStatusTransitionError,
    LLMError,
    NoRelevantDocumentsError,
    PipelineError,
    ProviderUnavailableError,
    RAGError,
    RateLimitError,
    ServiceTimeoutError,
)
from groundwriter.utils.logging import configure_logging, get_logger
from groundwriter.utils.timeouts import with_timeout

__all__ = [
    "ConfigurationError",
    "DocumentNotFoundError",
    "ExtractionError",
    "GroundwriterError",
    "IngestionError",
    "InvalidStatusTransitionError",
    "LLMError",
    "NoRelevantDocumentsError",
    "PipelineError",
    "ProviderUnavailableError",
    "RAGError",
    "RateLimitError",
    "ServiceTimeoutError",
    "configure_logging",
    "get_logger",
    "with_timeout",
]
