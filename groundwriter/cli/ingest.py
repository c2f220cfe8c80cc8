"""Command-line management of the groundwriter knowledge base.

Usage::

    python -m groundwriter.cli ingest --file notes.pdf --source-id notes
    python -m groundwriter.cli ingest --url https://example.com/post
    python -m groundwriter.cli remove notes
    python -m groundwriter.cli query "What did the notes say about pricing?"
    python -m groundwriter.cli stats

Providers are built directly from :class:`Settings`; the web app is not
started.
"""

from __future__ import annotations

import argparse
import asyncio
import re
import sys
from dataclasses import dataclass
from pathlib import Path

from groundwriter.config.loader import settings_from_config
from groundwriter.config.settings import Settings
from groundwriter.interfaces.source_extractor import ExtractedText
from groundwriter.models.rag import SourceType
from groundwriter.services.ingestion.ingestion_service import IngestionService
from groundwriter.services.rag_query_engine import RAGQueryEngine
from groundwriter.utils.errors import GroundwriterError
from groundwriter.utils.logging import configure_logging


@dataclass
class _Components:
    ingestion: IngestionService
    query_engine: RAGQueryEngine


def _build_components(app_settings: Settings) -> _Components:
    """Construct the ingestion service and query engine (heavy imports deferred)."""
    from groundwriter.providers.embedding.openai_embedding_provider import (
        OpenAIEmbeddingProvider,
    )
    from groundwriter.providers.llm.openai_provider import OpenAILLMProvider
    from groundwriter.providers.vector_store.chromadb_provider import ChromaDBProvider
    from groundwriter.services.ingestion.chunker import TextChunker

    embedding = OpenAIEmbeddingProvider(settings=app_settings)
    vector_store = ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )
    ingestion = IngestionService(
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
            min_length=app_settings.min_chunk_length,
        ),
        embedding_provider=embedding,
        vector_store=vector_store,
        batch_size=app_settings.ingest_batch_size,
        batch_delay=app_settings.ingest_batch_delay,
        embedding_timeout=app_settings.embedding_timeout,
        vector_store_timeout=app_settings.vector_store_timeout,
    )
    engine = RAGQueryEngine(
        embedding_provider=embedding,
        vector_store=vector_store,
        llm=OpenAILLMProvider(settings=app_settings),
        top_k=app_settings.rag_top_k,
        max_context_chars=app_settings.rag_max_context_chars,
        temperature=app_settings.rag_temperature,
        max_tokens=app_settings.rag_max_tokens,
        retrieval_timeout=app_settings.vector_store_timeout,
        llm_timeout=app_settings.llm_timeout,
    )
    return _Components(ingestion=ingestion, query_engine=engine)


def _slug(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]+", "-", value).strip("-").lower()[:80] or "source"


async def _read_source(args: argparse.Namespace) -> tuple[ExtractedText, SourceType, str]:
    """Return the extracted text, its source type and a default name."""
    if args.url:
        from groundwriter.providers.extraction.url_extractor import URLExtractor

        extractor = URLExtractor()
        try:
            extracted = await extractor.extract(args.url)
        finally:
            await extractor.aclose()
        return extracted, SourceType.URL, extracted.title or args.url

    path = Path(args.file)
    if path.suffix.lower() == ".pdf":
        from groundwriter.providers.extraction.pdf_extractor import PDFExtractor

        extracted = await PDFExtractor().extract(path.read_bytes())
        return extracted, SourceType.PDF, extracted.title or path.name
    return ExtractedText(text=path.read_text(encoding="utf-8")), SourceType.PDF, path.name


async def _handle_ingest(args: argparse.Namespace, components: _Components) -> int:
    extracted, source_type, default_name = await _read_source(args)
    source_id = args.source_id or _slug(args.url or Path(args.file).stem)
    name = args.name or default_name
    print(f"Ingesting {name} as '{source_id}' ({source_type.value})")

    result = await components.ingestion.ingest(
        source_id=source_id,
        source_name=name,
        source_type=source_type,
        content=extracted.text,
    )
    print("\nIngestion complete:")
    print(f"  Chunks created:     {result.chunks_created}")
    print(f"  Average chunk size: {result.average_chunk_size}")
    print(f"  Time:               {result.ingestion_time:.2f}s")
    return 0


async def _handle_remove(args: argparse.Namespace, components: _Components) -> int:
    removed = await components.ingestion.remove_source(args.source_id)
    print(f"Deleted {removed} chunks for source '{args.source_id}'.")
    return 0


async def _handle_query(args: argparse.Namespace, components: _Components) -> int:
    response = await components.query_engine.query(args.question)
    print(response.text)
    if response.sources:
        print("\nSources:")
        for name in response.sources:
            print(f"  - {name}")
    return 0


async def _handle_stats(args: argparse.Namespace, components: _Components) -> int:
    stats = await components.ingestion.get_corpus_stats()
    print("Knowledge base")
    print("=" * 40)
    print(f"  Total chunks:   {stats.total_chunks}")
    print(f"  Unique sources: {stats.unique_sources}")
    return 0


_HANDLERS = {
    "ingest": _handle_ingest,
    "remove": _handle_remove,
    "query": _handle_query,
    "stats": _handle_stats,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m groundwriter.cli",
        description="Manage the groundwriter knowledge base.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest_parser = subparsers.add_parser("ingest", help="Index a file or web page")
    source = ingest_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="Path to a PDF or plain-text file")
    source.add_argument("--url", help="Web page URL")
    ingest_parser.add_argument(
        "--source-id",
        dest="source_id",
        help="Identifier to index under (default: derived from the file or URL)",
    )
    ingest_parser.add_argument("--name", help="Display name used in citations")

    remove_parser = subparsers.add_parser("remove", help="Delete a source's chunks")
    remove_parser.add_argument("source_id", help="Source identifier")

    query_parser = subparsers.add_parser("query", help="Ask a question of the sources")
    query_parser.add_argument("question", help="Question text")

    subparsers.add_parser("stats", help="Show knowledge-base statistics")
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = settings_from_config()
    configure_logging(log_level=app_settings.log_level)
    if not app_settings.has_openai():
        print("Error: OPENAI_API_KEY is not set.", file=sys.stderr)
        sys.exit(1)

    components = _build_components(app_settings)
    try:
        exit_code = asyncio.run(_HANDLERS[args.command](args, components))
    except GroundwriterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
