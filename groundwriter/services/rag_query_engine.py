"""Retrieval-augmented query engine.

Data flow for one question:

  1. EMBED     -- the question becomes a vector.
  2. RETRIEVE  -- the top-k (default 6) nearest chunks come back from the
                  vector store.  Zero chunks raises
                  :class:`NoRelevantDocumentsError` and the model is never
                  called with an empty context.
  3. CONTEXT   -- chunks are ordered by descending similarity (stable, so
                  ties keep retrieval order) and rendered as
                  ``Source n (name):`` blocks separated by ``---`` lines,
                  within a character budget.
  4. GENERATE  -- one model call with the context, the question and the
                  provenance instructions.

Steps 1-3 are also available on their own as
:meth:`RAGQueryEngine.gather_context` for callers with their own prompt.

Retrieval failures surface as :class:`RAGError`; model failures as
:class:`LLMError`.  Degrading to a non-retrieval answer is the caller's
job (see :mod:`groundwriter.services.writing_service`).
"""

from __future__ import annotations

from typing import Any

import structlog

from groundwriter.interfaces.embedding_provider import IEmbeddingProvider
from groundwriter.interfaces.llm_provider import ILLMProvider
from groundwriter.interfaces.vector_store_provider import IVectorStoreProvider
from groundwriter.models.rag import RAGResponse, RetrievedChunk
from groundwriter.utils.errors import (
    NoRelevantDocumentsError,
    ProviderUnavailableError,
    RAGError,
    RateLimitError,
    ServiceTimeoutError,
)
from groundwriter.utils.logging import get_logger
from groundwriter.utils.timeouts import with_timeout

logger: structlog.BoundLogger = get_logger(__name__)

CONTEXT_DELIMITER = "\n\n---\n\n"

_RAG_PROMPT = """\
You are a helpful AI assistant. Answer the user's question using the \
context retrieved from their own sources.

Context from sources:
{context}

User Question: {question}

Instructions:
- Base your answer primarily on the provided context
- Be comprehensive and informative
- Maintain a natural writing style
- Reference information from the sources when relevant
- If the context doesn't fully address the question, supplement with your \
general knowledge and say clearly which parts come from the sources and \
which come from general knowledge

Answer:"""


class RAGQueryEngine:
    """Answers a question from the indexed sources with one LLM call.

    Parameters
    ----------
    embedding_provider:
        Embeds the question.
    vector_store:
        Similarity search over indexed chunks.
    llm:
        Generates the answer.
    top_k:
        Chunks to retrieve per question (default 6).
    max_context_chars:
        Budget for the rendered context block.
    temperature / max_tokens:
        Sampling settings for the answer call.
    retrieval_timeout / llm_timeout:
        Deadlines in seconds for the retrieval calls and the model call.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        llm: ILLMProvider,
        top_k: int = 6,
        max_context_chars: int = 12000,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        retrieval_timeout: float | None = 30.0,
        llm_timeout: float | None = 90.0,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._llm = llm
        self._top_k = top_k
        self._max_context_chars = max_context_chars
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._retrieval_timeout = retrieval_timeout
        self._llm_timeout = llm_timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def query(
        self,
        question: str,
        filters: dict[str, Any] | None = None,
    ) -> RAGResponse:
        """Answer *question* from the indexed sources.

        Raises
        ------
        ValueError
            If *question* is blank.
        NoRelevantDocumentsError
            If retrieval returns nothing.
        RAGError
            If embedding or similarity search fails.
        LLMError, ServiceTimeoutError, RateLimitError
            If the answer call fails.
        """
        question = (question or "").strip()
        if not question:
            raise ValueError("question must not be empty")

        context, used = await self.gather_context(question, filters=filters)
        prompt = _RAG_PROMPT.format(context=context, question=question)

        text = await with_timeout(
            self._llm.complete(
                system_prompt="",
                user_prompt=prompt,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            ),
            self._llm_timeout,
            stage="RAG answer generation",
            provider_name=self._llm.get_provider_name(),
        )

        sources = list(dict.fromkeys(rc.chunk.source_name for rc in used))
        logger.info(
            "rag_query_answered",
            question=question[:80],
            in_context=len(used),
            sources=len(sources),
            top_score=round(used[0].similarity_score, 3),
        )
        return RAGResponse(text=text, sources=sources, source_documents=used)

    async def gather_context(
        self,
        question: str,
        filters: dict[str, Any] | None = None,
    ) -> tuple[str, list[RetrievedChunk]]:
        """Retrieve, rank and render the context block for *question*.

        Callers that build their own prompt around the sources use this
        instead of :meth:`query`.  Raises :class:`NoRelevantDocumentsError`
        when nothing is retrieved.
        """
        retrieved = await self.retrieve(question, filters=filters)
        if not retrieved:
            logger.info("rag_no_relevant_documents", question=question[:80])
            raise NoRelevantDocumentsError(provider_name=self._vector_store.get_provider_name())

        ranked = sorted(retrieved, key=lambda rc: rc.similarity_score, reverse=True)
        return self.build_context(ranked)

    async def retrieve(
        self,
        question: str,
        filters: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Embed *question* and return the raw top-k matches.

        Deadline expiry propagates as :class:`ServiceTimeoutError`; rate
        limits and unavailable backends are reported as :class:`RAGError`.
        """
        try:
            vector = await with_timeout(
                self._embedding_provider.embed_single(question),
                self._retrieval_timeout,
                stage="embedding question",
                provider_name=self._embedding_provider.get_provider_name(),
            )
            return await with_timeout(
                self._vector_store.query(vector, top_k=self._top_k, filters=filters),
                self._retrieval_timeout,
                stage="similarity search",
                provider_name=self._vector_store.get_provider_name(),
            )
        except ServiceTimeoutError:
            raise
        except (ProviderUnavailableError, RateLimitError) as exc:
            raise RAGError(
                message=f"Retrieval failed: {exc.message}",
                provider_name=exc.provider_name,
            ) from exc

    def build_context(self, ranked: list[RetrievedChunk]) -> tuple[str, list[RetrievedChunk]]:
        """Render the context block and return it with the chunks it includes.

        Whole blocks are added in rank order until the next one would pass
        ``max_context_chars``.  The first block is always included,
        truncated if it alone exceeds the budget.
        """
        blocks: list[str] = []
        used: list[RetrievedChunk] = []
        length = 0
        for n, rc in enumerate(ranked, start=1):
            block = f"Source {n} ({rc.chunk.source_name}):\n{rc.chunk.text}"
            cost = len(block) + (len(CONTEXT_DELIMITER) if blocks else 0)
            if blocks and length + cost > self._max_context_chars:
                break
            if not blocks and cost > self._max_context_chars:
                block = block[: self._max_context_chars]
                cost = len(block)
            blocks.append(block)
            used.append(rc)
            length += cost
        return CONTEXT_DELIMITER.join(blocks), used
