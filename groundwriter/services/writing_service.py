"""Grounded content generation and writing-assist actions.

Both entry points try the :class:`RAGQueryEngine` first.  When retrieval
cannot help (a retrieval or model failure, or an empty knowledge base)
they degrade to :meth:`WritingService._complete_without_retrieval`, a
direct model call that sees only what the user supplied.  The result
says which path produced it via ``retrieval_used`` and ``notice``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import structlog

from groundwriter.interfaces.llm_provider import ILLMProvider
from groundwriter.models.rag import GenerationResult, RAGResponse
from groundwriter.pipeline.status_bus import JobStatusBus
from groundwriter.pipeline.status_events import (
    analyzing_event,
    completed_event,
    failed_event,
    processing_event,
)
from groundwriter.services.rag_query_engine import RAGQueryEngine
from groundwriter.utils.errors import (
    GroundwriterError,
    LLMError,
    NoRelevantDocumentsError,
    ProviderUnavailableError,
    RAGError,
    RateLimitError,
)
from groundwriter.utils.logging import get_logger
from groundwriter.utils.timeouts import with_timeout

logger: structlog.BoundLogger = get_logger(__name__)

# Roughly four characters per model token.
_CHARS_PER_TOKEN = 4
_MAX_CONTENT_TOKENS = 3000
_MIN_CONTEXT_LENGTH = 20
# Only this much of the edited text is embedded as the retrieval query.
_QUERY_SNIPPET_CHARS = 500

_NO_DOCUMENTS_NOTICE = (
    "No relevant passages were found in your sources; "
    "this was written from general knowledge."
)
_UNAVAILABLE_NOTICE = (
    "Your sources could not be searched right now; "
    "this was written from general knowledge."
)

# Failures of the grounded path that trigger the fallback.
_FALLBACK_ERRORS = (RAGError, LLMError, ProviderUnavailableError, RateLimitError)


class AssistAction(str, Enum):
    CONTINUE = "continue"
    IMPROVE = "improve"
    REWRITE = "rewrite"
    EXPAND = "expand"
    SUMMARIZE = "summarize"


@dataclass(frozen=True)
class _ActionProfile:
    system_prompt: str
    instruction: str
    temperature: float
    max_tokens: int
    keep_tail: bool = False


_ACTIONS: dict[AssistAction, _ActionProfile] = {
    AssistAction.CONTINUE: _ActionProfile(
        system_prompt=(
            "You are a writing assistant. Continue the user's text naturally, "
            "matching its tone, style and point of view. Return only the new text."
        ),
        instruction="Continue writing from where this text ends",
        temperature=0.7,
        max_tokens=800,
        keep_tail=True,
    ),
    AssistAction.IMPROVE: _ActionProfile(
        system_prompt=(
            "You are an editor. Improve clarity, grammar and flow of the user's "
            "text without changing its meaning. Return only the improved text."
        ),
        instruction="Improve the clarity and flow of this text",
        temperature=0.3,
        max_tokens=500,
    ),
    AssistAction.REWRITE: _ActionProfile(
        system_prompt=(
            "You are a writing assistant. Rewrite the user's text in a fresh way "
            "while keeping its key points. Return only the rewritten text."
        ),
        instruction="Rewrite this text",
        temperature=0.7,
        max_tokens=500,
    ),
    AssistAction.EXPAND: _ActionProfile(
        system_prompt=(
            "You are a writing assistant. Expand the user's text with more detail, "
            "examples and explanation. Return only the expanded text."
        ),
        instruction="Expand this text with more detail",
        temperature=0.7,
        max_tokens=500,
    ),
    AssistAction.SUMMARIZE: _ActionProfile(
        system_prompt=(
            "You are a writing assistant. Summarize the user's text concisely, "
            "keeping the essential points. Return only the summary."
        ),
        instruction="Summarize this text",
        temperature=0.3,
        max_tokens=500,
    ),
}

_TITLE_PROMPT = (
    "Write a short, specific title (at most 10 words) for a piece of writing "
    "about the following request. Reply with the title only, no quotes.\n\n"
    "Request: {prompt}"
)

_GROUNDED_ASSIST_PROMPT = """\
Relevant material from the user's sources:
{context}

Use this material where it helps and do not contradict it.

{task}"""

_GENERATION_SYSTEM_PROMPT = (
    "You are a skilled writer. Write well-structured, informative content "
    "for the user's request using general knowledge."
)


class WritingService:
    """Generates and edits text, grounded in the indexed sources when possible.

    Parameters
    ----------
    query_engine:
        The retrieval-augmented engine used for the grounded path.
    llm:
        The model used for titles and for the fallback path.
    status_bus:
        Optional; when given, generation jobs with a ``job_id`` publish
        their milestones on it.
    llm_timeout:
        Deadline in seconds for direct model calls.
    """

    def __init__(
        self,
        query_engine: RAGQueryEngine,
        llm: ILLMProvider,
        status_bus: JobStatusBus | None = None,
        llm_timeout: float | None = 90.0,
    ) -> None:
        self._engine = query_engine
        self._llm = llm
        self._bus = status_bus
        self._llm_timeout = llm_timeout

    # ------------------------------------------------------------------
    # Content generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        title: str | None = None,
        job_id: str | None = None,
    ) -> GenerationResult:
        """Produce a titled piece of content for *prompt*.

        A title is generated first when none is given, then the body is
        written from the sources (or from general knowledge on fallback).
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("prompt must not be empty")

        try:
            if not title:
                await self._publish_processing(job_id, "Generating title...")
                title = await self._generate_title(prompt)

            await self._publish_analyzing(job_id, "Writing content from your sources...")
            question = (
                f"Write a complete, well-structured piece titled \"{title}\".\n"
                f"Request: {prompt}"
            )
            try:
                response = await self._engine.query(question)
            except _FALLBACK_ERRORS as exc:
                result = await self._complete_without_retrieval(
                    system_prompt=_GENERATION_SYSTEM_PROMPT,
                    user_prompt=f"Title: {title}\n\n{prompt}",
                    temperature=0.7,
                    max_tokens=2000,
                    cause=exc,
                    title=title,
                )
            else:
                result = self._grounded(response, title=title)
        except GroundwriterError as exc:
            if self._bus is not None and job_id:
                await self._bus.publish(failed_event(job_id, exc.message))
            raise

        if self._bus is not None and job_id:
            await self._bus.publish(
                completed_event(
                    job_id,
                    {
                        "title": result.title,
                        "retrieval_used": result.retrieval_used,
                        "sources": result.sources,
                    },
                )
            )
        logger.info(
            "content_generated",
            title=result.title,
            retrieval_used=result.retrieval_used,
            sources=len(result.sources),
        )
        return result

    # ------------------------------------------------------------------
    # Writing assist
    # ------------------------------------------------------------------

    async def assist(
        self,
        action: AssistAction | str,
        content: str,
        context: str | None = None,
        instructions: str | None = None,
    ) -> GenerationResult:
        """Apply a writing-assist *action* to *content*.

        *context* (surrounding document text) is only used when it is
        longer than a trivial snippet.  *content* is cut to a character
        budget; ``continue`` keeps the end of the text, the others keep
        its start.
        """
        action = AssistAction(action)
        profile = _ACTIONS[action]
        content = (content or "").strip()
        if not content:
            raise ValueError("content must not be empty")

        budget = _MAX_CONTENT_TOKENS * _CHARS_PER_TOKEN
        if len(content) > budget:
            content = content[-budget:] if profile.keep_tail else content[:budget]

        context = (context or "").strip()
        user_parts = [f"{profile.instruction}:\n\n{content}"]
        if len(context) > _MIN_CONTEXT_LENGTH:
            user_parts.append(f"Surrounding context:\n{context[:budget // 2]}")
        if instructions and instructions.strip():
            user_parts.append(f"Additional instructions: {instructions.strip()}")
        user_prompt = "\n\n".join(user_parts)

        if profile.keep_tail:
            snippet = content[-_QUERY_SNIPPET_CHARS:]
        else:
            snippet = content[:_QUERY_SNIPPET_CHARS]
        try:
            source_context, used = await self._engine.gather_context(
                f"{profile.instruction}: {snippet}"
            )
            text = await with_timeout(
                self._llm.complete(
                    system_prompt=profile.system_prompt,
                    user_prompt=_GROUNDED_ASSIST_PROMPT.format(
                        context=source_context, task=user_prompt
                    ),
                    temperature=profile.temperature,
                    max_tokens=profile.max_tokens,
                ),
                self._llm_timeout,
                stage="writing assist",
                provider_name=self._llm.get_provider_name(),
            )
        except _FALLBACK_ERRORS as exc:
            result = await self._complete_without_retrieval(
                system_prompt=profile.system_prompt,
                user_prompt=user_prompt,
                temperature=profile.temperature,
                max_tokens=profile.max_tokens,
                cause=exc,
            )
        else:
            result = GenerationResult(
                text=text,
                sources=list(dict.fromkeys(rc.chunk.source_name for rc in used)),
                source_documents=used,
                retrieval_used=True,
            )

        logger.info(
            "writing_assist_completed",
            action=action.value,
            content_length=len(content),
            retrieval_used=result.retrieval_used,
        )
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _generate_title(self, prompt: str) -> str:
        try:
            raw = await with_timeout(
                self._llm.complete(
                    system_prompt="",
                    user_prompt=_TITLE_PROMPT.format(prompt=prompt[:500]),
                    temperature=0.7,
                    max_tokens=50,
                ),
                self._llm_timeout,
                stage="title generation",
                provider_name=self._llm.get_provider_name(),
            )
        except _FALLBACK_ERRORS as exc:
            logger.warning("title_generation_failed", error=str(exc))
            return _title_from_prompt(prompt)
        title = raw.strip().strip('"').strip()
        return title or _title_from_prompt(prompt)

    async def _complete_without_retrieval(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        cause: Exception,
        title: str | None = None,
    ) -> GenerationResult:
        """Answer with a direct model call that uses no retrieved material.

        Failures here are not caught: with both paths down the caller
        gets the :class:`LLMError` (or timeout) from this call.
        """
        notice = (
            _NO_DOCUMENTS_NOTICE
            if isinstance(cause, NoRelevantDocumentsError)
            else _UNAVAILABLE_NOTICE
        )
        logger.warning(
            "retrieval_fallback",
            cause=type(cause).__name__,
            error=str(cause),
        )
        text = await with_timeout(
            self._llm.complete(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
            ),
            self._llm_timeout,
            stage="fallback generation",
            provider_name=self._llm.get_provider_name(),
        )
        return GenerationResult(
            text=text,
            title=title,
            sources=[],
            source_documents=[],
            retrieval_used=False,
            notice=notice,
        )

    @staticmethod
    def _grounded(response: RAGResponse, title: str | None = None) -> GenerationResult:
        return GenerationResult(
            text=response.text,
            title=title,
            sources=response.sources,
            source_documents=response.source_documents,
            retrieval_used=True,
        )

    async def _publish_processing(self, job_id: str | None, message: str) -> None:
        if self._bus is not None and job_id:
            await self._bus.publish(processing_event(job_id, message))

    async def _publish_analyzing(self, job_id: str | None, message: str) -> None:
        if self._bus is not None and job_id:
            await self._bus.publish(analyzing_event(job_id, message))


def _title_from_prompt(prompt: str, limit: int = 60) -> str:
    first_line = prompt.splitlines()[0].strip()
    if len(first_line) <= limit:
        return first_line
    return first_line[:limit].rsplit(" ", 1)[0] + "..."
