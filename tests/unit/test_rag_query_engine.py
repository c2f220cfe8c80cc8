"""Unit tests for RAGQueryEngine."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import MockEmbeddingProvider, MockVectorStore
from groundwriter.models.rag import DocumentChunk, RetrievedChunk, SourceType
from groundwriter.services.rag_query_engine import CONTEXT_DELIMITER, RAGQueryEngine
from groundwriter.utils.errors import (
    LLMError,
    NoRelevantDocumentsError,
    ProviderUnavailableError,
    RAGError,
    RateLimitError,
    ServiceTimeoutError,
)


def _retrieved(
    text: str,
    score: float,
    source_name: str = "Guide",
    index: int = 0,
) -> RetrievedChunk:
    source_id = source_name.lower().replace(" ", "-")
    return RetrievedChunk(
        chunk=DocumentChunk(
            chunk_id=DocumentChunk.make_id(source_id, index),
            text=text,
            chunk_index=index,
            total_chunks=index + 1,
            chunk_size=len(text),
            source_id=source_id,
            source_name=source_name,
            source_type=SourceType.PDF,
        ),
        similarity_score=score,
    )


def _engine_with_results(
    results: list[RetrievedChunk],
    llm,
    **kwargs,
) -> RAGQueryEngine:
    store = MockVectorStore()
    store.query = AsyncMock(return_value=results)  # type: ignore[method-assign]
    return RAGQueryEngine(
        embedding_provider=MockEmbeddingProvider(),
        vector_store=store,
        llm=llm,
        **kwargs,
    )


def _prompt_of(llm) -> str:
    return llm.complete.await_args.kwargs["user_prompt"]


class TestQueryHappyPath:
    @pytest.mark.asyncio
    async def test_answer_built_from_indexed_sources(
        self,
        ingestion_service,
        mock_embedding_provider,
        mock_vector_store,
        mock_llm_provider,
        sample_article_text,
    ) -> None:
        await ingestion_service.ingest("garden", "Garden Guide", "pdf", sample_article_text)
        engine = RAGQueryEngine(
            embedding_provider=mock_embedding_provider,
            vector_store=mock_vector_store,
            llm=mock_llm_provider,
        )

        response = await engine.query("How do gardens handle water?")

        assert response.text == "Generated answer."
        assert response.sources == ["Garden Guide"]
        assert 1 <= len(response.source_documents) <= 6
        prompt = _prompt_of(mock_llm_provider)
        assert "Source 1 (Garden Guide):" in prompt
        assert "User Question: How do gardens handle water?" in prompt
        mock_llm_provider.complete.assert_awaited_once()
        kwargs = mock_llm_provider.complete.await_args.kwargs
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 2000

    @pytest.mark.asyncio
    async def test_top_k_passed_to_store(self, mock_llm_provider) -> None:
        engine = _engine_with_results([_retrieved("a", 0.9)], mock_llm_provider, top_k=3)
        await engine.query("anything")
        assert engine._vector_store.query.await_args.kwargs["top_k"] == 3

    @pytest.mark.asyncio
    async def test_filters_forwarded(self, mock_llm_provider) -> None:
        engine = _engine_with_results([_retrieved("a", 0.9)], mock_llm_provider)
        await engine.query("anything", filters={"source_type": "pdf"})
        assert engine._vector_store.query.await_args.kwargs["filters"] == {"source_type": "pdf"}


class TestGatherContext:
    @pytest.mark.asyncio
    async def test_ranked_context_without_model_call(self, mock_llm_provider) -> None:
        engine = _engine_with_results(
            [_retrieved("low", 0.2, index=0), _retrieved("high", 0.9, index=1)],
            mock_llm_provider,
        )

        context, used = await engine.gather_context("anything")

        assert [rc.chunk.text for rc in used] == ["high", "low"]
        assert context.startswith("Source 1 (Guide):\nhigh")
        mock_llm_provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_retrieval_raises(self, mock_llm_provider) -> None:
        engine = _engine_with_results([], mock_llm_provider)
        with pytest.raises(NoRelevantDocumentsError):
            await engine.gather_context("anything")


class TestOrderingAndSources:
    @pytest.mark.asyncio
    async def test_context_sorted_by_descending_score(self, mock_llm_provider) -> None:
        results = [
            _retrieved("low", 0.2, "C"),
            _retrieved("high", 0.9, "A"),
            _retrieved("mid", 0.5, "B"),
        ]
        engine = _engine_with_results(results, mock_llm_provider)

        response = await engine.query("q")

        assert response.sources == ["A", "B", "C"]
        prompt = _prompt_of(mock_llm_provider)
        assert prompt.index("Source 1 (A):\nhigh") < prompt.index("Source 2 (B):\nmid")
        assert prompt.index("Source 2 (B):\nmid") < prompt.index("Source 3 (C):\nlow")

    @pytest.mark.asyncio
    async def test_ties_keep_retrieval_order(self, mock_llm_provider) -> None:
        results = [
            _retrieved("first", 0.5, "First"),
            _retrieved("second", 0.5, "Second"),
        ]
        engine = _engine_with_results(results, mock_llm_provider)
        response = await engine.query("q")
        assert response.sources == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_sources_deduplicated_in_rank_order(self, mock_llm_provider) -> None:
        results = [
            _retrieved("one", 0.9, "Guide", 0),
            _retrieved("two", 0.8, "Notes", 0),
            _retrieved("three", 0.7, "Guide", 1),
        ]
        engine = _engine_with_results(results, mock_llm_provider)
        response = await engine.query("q")
        assert response.sources == ["Guide", "Notes"]
        assert len(response.source_documents) == 3


class TestBuildContext:
    def test_blocks_joined_by_delimiter(self, mock_llm_provider) -> None:
        engine = _engine_with_results([], mock_llm_provider)
        context, used = engine.build_context(
            [_retrieved("alpha", 0.9, "A"), _retrieved("beta", 0.8, "B")]
        )
        assert context == f"Source 1 (A):\nalpha{CONTEXT_DELIMITER}Source 2 (B):\nbeta"
        assert len(used) == 2

    def test_budget_drops_trailing_blocks(self, mock_llm_provider) -> None:
        engine = _engine_with_results([], mock_llm_provider, max_context_chars=120)
        ranked = [_retrieved("x" * 60, 0.9 - i / 10, f"S{i}") for i in range(4)]
        context, used = engine.build_context(ranked)
        assert len(context) <= 120
        assert len(used) == 1
        assert used[0] is ranked[0]

    def test_oversized_first_block_is_truncated(self, mock_llm_provider) -> None:
        engine = _engine_with_results([], mock_llm_provider, max_context_chars=50)
        context, used = engine.build_context([_retrieved("y" * 500, 0.9)])
        assert len(context) == 50
        assert context.startswith("Source 1 (Guide):\n")
        assert len(used) == 1


class TestFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   "])
    async def test_blank_question_rejected(self, mock_llm_provider, question: str) -> None:
        engine = _engine_with_results([_retrieved("a", 0.9)], mock_llm_provider)
        with pytest.raises(ValueError):
            await engine.query(question)
        mock_llm_provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_index_raises_without_llm_call(
        self, mock_embedding_provider, mock_vector_store, mock_llm_provider
    ) -> None:
        engine = RAGQueryEngine(
            embedding_provider=mock_embedding_provider,
            vector_store=mock_vector_store,
            llm=mock_llm_provider,
        )
        with pytest.raises(NoRelevantDocumentsError):
            await engine.query("Anything at all?")
        mock_llm_provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ProviderUnavailableError(message="connection refused", provider_name="chromadb"),
            RateLimitError(message="slow down", provider_name="openai"),
        ],
    )
    async def test_retrieval_failures_wrapped_as_rag_error(self, mock_llm_provider, error) -> None:
        engine = _engine_with_results([], mock_llm_provider)
        engine._vector_store.query = AsyncMock(side_effect=error)
        with pytest.raises(RAGError, match="Retrieval failed") as exc_info:
            await engine.query("q")
        assert exc_info.value.__cause__ is error
        mock_llm_provider.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retrieval_timeout_propagates_unchanged(self, mock_llm_provider) -> None:
        engine = _engine_with_results([], mock_llm_provider, retrieval_timeout=0.01)

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        engine._vector_store.query = hang
        with pytest.raises(ServiceTimeoutError, match="similarity search"):
            await engine.query("q")

    @pytest.mark.asyncio
    async def test_llm_error_propagates(self, mock_llm_provider) -> None:
        mock_llm_provider.complete.side_effect = LLMError(message="bad", provider_name="openai")
        engine = _engine_with_results([_retrieved("a", 0.9)], mock_llm_provider)
        with pytest.raises(LLMError):
            await engine.query("q")
