"""Custom exception hierarchy for groundwriter.

All application exceptions inherit from :class:`GroundwriterError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "sqlite") caused the failure.

The hierarchy is organized by pipeline domain:

    GroundwriterError  (base -- catch-all for any groundwriter error)
    +-- IngestionError               (empty / unusable source content)
    +-- ExtractionError              (pdf / url / screenshot text extraction)
    +-- RAGError                     (embedding or vector-store failure)
    |   +-- NoRelevantDocumentsError (retrieval returned zero chunks)
    +-- LLMError                     (any LLM API call failure)
    +-- ProviderUnavailableError     (external service down / unreachable)
    |   +-- ServiceTimeoutError      (external call exceeded its deadline)
    +-- RateLimitError               (provider rate-limit exceeded)
    +-- DocumentNotFoundError        (job/document record missing)
    +-- InvalidStatusTransitionError (job lifecycle violated)
    +-- PipelineError                (background job orchestration)
    +-- ConfigurationError           (startup / missing config)

Each class also declares the HTTP ``status_code`` the API layer returns
when the error escapes a request handler.
"""


class GroundwriterError(Exception):
    """Base exception for all groundwriter errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._message = message or self.default_message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Content errors (rejected before any external call)
# ---------------------------------------------------------------------------

class IngestionError(GroundwriterError):
    """Raised when source content is empty or yields no usable chunks."""

    status_code = 400
    default_message = "Source content could not be ingested"


class ExtractionError(GroundwriterError):
    """Raised when text cannot be extracted from a PDF, URL, or screenshot."""

    status_code = 422
    default_message = "Text extraction failed"


# ---------------------------------------------------------------------------
# Retrieval / generation errors
# ---------------------------------------------------------------------------

class RAGError(GroundwriterError):
    """Raised when a RAG operation fails (embedding or vector store)."""

    status_code = 502
    default_message = "RAG pipeline operation failed"


class NoRelevantDocumentsError(RAGError):
    """Raised when retrieval succeeds but returns zero chunks.

    Not an upstream failure: it tells the caller to take the
    non-retrieval path instead of prompting the model with empty context.
    """

    status_code = 404
    default_message = "No relevant documents found"


class LLMError(GroundwriterError):
    """Raised when an LLM API call fails or returns an unusable response."""

    status_code = 502
    default_message = "LLM API call failed"


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(GroundwriterError):
    """Raised when an external service or provider is unreachable."""

    status_code = 503
    default_message = "External service is unavailable"


class ServiceTimeoutError(ProviderUnavailableError):
    """Raised when an external call does not finish within its timeout."""

    status_code = 504
    default_message = "External service timed out"


class RateLimitError(GroundwriterError):
    """Raised when an API rate limit is exceeded."""

    status_code = 429
    default_message = "Rate limit exceeded"


# ---------------------------------------------------------------------------
# Job / document lifecycle errors
# ---------------------------------------------------------------------------

class DocumentNotFoundError(GroundwriterError):
    """Raised when a job/document record does not exist (or was deleted)."""

    status_code = 404
    default_message = "Document not found"


class InvalidStatusTransitionError(GroundwriterError):
    """Raised when a record is moved backwards or out of a terminal state."""

    status_code = 409
    default_message = "Invalid status transition"


class PipelineError(GroundwriterError):
    """Raised when background job orchestration fails."""

    default_message = "Pipeline orchestration failed"


class ConfigurationError(GroundwriterError):
    """Raised when configuration is invalid or missing at startup."""

    default_message = "Invalid or missing configuration"
