"""Unit tests for the knowledge-base CLI."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from groundwriter.cli import ingest as cli
from groundwriter.services.rag_query_engine import RAGQueryEngine


@pytest.fixture
def components(ingestion_service, mock_embedding_provider, mock_vector_store, mock_llm_provider):
    return cli._Components(
        ingestion=ingestion_service,
        query_engine=RAGQueryEngine(
            embedding_provider=mock_embedding_provider,
            vector_store=mock_vector_store,
            llm=mock_llm_provider,
        ),
    )


def _run(argv: list[str], settings, components) -> int:
    with (
        patch.object(cli, "settings_from_config", return_value=settings),
        patch.object(cli, "configure_logging"),
        patch.object(cli, "_build_components", return_value=components),
        pytest.raises(SystemExit) as exc_info,
    ):
        cli.main(argv)
    return exc_info.value.code


class TestParser:
    def test_ingest_requires_file_or_url(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args(["ingest"])

    def test_file_and_url_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args(["ingest", "--file", "a.txt", "--url", "https://x"])

    def test_slug(self) -> None:
        assert cli._slug("https://example.com/My Post!") == "https-example-com-my-post"
        assert cli._slug("!!!") == "source"


class TestMain:
    def test_no_command_prints_help(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_missing_api_key(self, test_settings, components, capsys) -> None:
        settings = test_settings.model_copy(update={"openai_api_key": ""})
        assert _run(["stats"], settings, components) == 1
        assert "OPENAI_API_KEY" in capsys.readouterr().err

    def test_ingest_text_file(self, tmp_path, test_settings, components, mock_vector_store, capsys) -> None:
        notes = tmp_path / "Field Notes.txt"
        notes.write_text("Short field notes about the garden.", encoding="utf-8")

        code = _run(["ingest", "--file", str(notes)], test_settings, components)

        assert code == 0
        assert "Chunks created:     1" in capsys.readouterr().out
        assert mock_vector_store.chunks[0].source_id == "field-notes"
        assert mock_vector_store.chunks[0].source_name == "Field Notes.txt"

    def test_ingest_with_explicit_id_and_name(self, tmp_path, test_settings, components, mock_vector_store) -> None:
        notes = tmp_path / "n.txt"
        notes.write_text("Some other notes.", encoding="utf-8")

        _run(["ingest", "--file", str(notes), "--source-id", "n1", "--name", "Notes"], test_settings, components)

        assert {c.source_id for c in mock_vector_store.chunks} == {"n1"}
        assert mock_vector_store.chunks[0].source_name == "Notes"

    def test_empty_file_reports_error(self, tmp_path, test_settings, components, capsys) -> None:
        empty = tmp_path / "empty.txt"
        empty.write_text("   ", encoding="utf-8")

        assert _run(["ingest", "--file", str(empty)], test_settings, components) == 1
        assert "Error:" in capsys.readouterr().err

    def test_remove_and_stats(self, tmp_path, test_settings, components, capsys) -> None:
        notes = tmp_path / "n.txt"
        notes.write_text("Notes to be removed later.", encoding="utf-8")
        _run(["ingest", "--file", str(notes), "--source-id", "n1"], test_settings, components)

        assert _run(["remove", "n1"], test_settings, components) == 0
        assert _run(["stats"], test_settings, components) == 0

        out = capsys.readouterr().out
        assert "Deleted 1 chunks for source 'n1'." in out
        assert "Total chunks:   0" in out

    def test_query_lists_sources(self, tmp_path, test_settings, components, capsys) -> None:
        notes = tmp_path / "n.txt"
        notes.write_text("Tomatoes need full sun.", encoding="utf-8")
        _run(["ingest", "--file", str(notes), "--name", "Garden"], test_settings, components)

        assert _run(["query", "What do tomatoes need?"], test_settings, components) == 0

        out = capsys.readouterr().out
        assert "Generated answer." in out
        assert "  - Garden" in out

    def test_query_on_empty_index_fails(self, test_settings, components, capsys) -> None:
        assert _run(["query", "Anything?"], test_settings, components) == 1
        assert "No relevant documents" in capsys.readouterr().err
