"""Unit tests for Settings and the YAML config loader."""

from __future__ import annotations

import pytest
import yaml
from pydantic import ValidationError

from groundwriter.config.loader import load_config, settings_from_config
from groundwriter.config.settings import Settings


def _write_yaml(tmp_path, data: dict) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings(openai_api_key="k")
        assert settings.chunk_size == 1000
        assert settings.chunk_overlap == 200
        assert settings.rag_top_k == 6
        assert settings.ingest_batch_size == 10
        assert settings.reconnect_max_attempts == 3

    def test_overlap_must_be_smaller_than_chunk(self) -> None:
        with pytest.raises(ValidationError):
            Settings(chunk_size=100, chunk_overlap=100)

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("RAG_TOP_K", "9")
        assert Settings().rag_top_k == 9

    def test_has_openai(self) -> None:
        assert Settings(openai_api_key="sk").has_openai()
        assert not Settings(openai_api_key="").has_openai()


class TestSettingsFromConfig:
    def test_yaml_values_become_defaults(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("CHUNK_SIZE", raising=False)
        path = _write_yaml(tmp_path, {"chunking": {"chunk_size": 800, "overlap": 100}, "retrieval": {"top_k": 4}})

        settings = settings_from_config(path)

        assert settings.chunk_size == 800
        assert settings.chunk_overlap == 100
        assert settings.rag_top_k == 4

    def test_environment_beats_yaml(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("RAG_TOP_K", "2")
        path = _write_yaml(tmp_path, {"retrieval": {"top_k": 4}})
        assert settings_from_config(path).rag_top_k == 2

    def test_explicit_overrides_win(self, tmp_path) -> None:
        path = _write_yaml(tmp_path, {"retrieval": {"top_k": 4}})
        assert settings_from_config(path, rag_top_k=11).rag_top_k == 11

    def test_missing_file_uses_defaults(self, tmp_path) -> None:
        assert settings_from_config(str(tmp_path / "absent.yaml")).chunk_size == 1000


class TestLoadConfig:
    def test_env_values_merged_over_yaml(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("CHROMADB_COLLECTION", "from_env")
        path = _write_yaml(
            tmp_path,
            {"vector_store": {"collection": "from_yaml", "extra": 1}, "chunking": {"chunk_size": 900}},
        )

        config = load_config(path)

        assert config["vector_store"]["collection"] == "from_env"
        assert config["vector_store"]["extra"] == 1
        assert config["chunking"]["chunk_size"] == 900
        assert "embedding_model" in config["llm"]
