"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
#   1. config/config.yaml  — static tunables checked into the repo
#   2. .env file           — local developer overrides (not committed)
#   3. Environment vars    — set at deploy time
#
# load_config() reads the YAML first, then deep-merges the Settings
# values on top, so an env var always beats the YAML default.
#
# settings_from_config() goes the other way: it flattens the YAML
# sections into Settings keyword arguments for fields the environment
# did not set.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path
from typing import Any

import yaml

from groundwriter.config.settings import Settings

# YAML section/key -> Settings field
_YAML_TO_SETTINGS: dict[tuple[str, str], str] = {
    ("chunking", "chunk_size"): "chunk_size",
    ("chunking", "overlap"): "chunk_overlap",
    ("chunking", "min_length"): "min_chunk_length",
    ("ingestion", "batch_size"): "ingest_batch_size",
    ("ingestion", "batch_delay"): "ingest_batch_delay",
    ("timeouts", "embedding"): "embedding_timeout",
    ("timeouts", "vector_store"): "vector_store_timeout",
    ("timeouts", "llm"): "llm_timeout",
    ("timeouts", "extraction"): "extraction_timeout",
    ("retrieval", "top_k"): "rag_top_k",
    ("retrieval", "max_context_chars"): "rag_max_context_chars",
    ("retrieval", "temperature"): "rag_temperature",
    ("retrieval", "max_tokens"): "rag_max_tokens",
    ("status_stream", "heartbeat_interval"): "status_heartbeat_interval",
    ("status_stream", "reconnect_max_attempts"): "reconnect_max_attempts",
    ("status_stream", "reconnect_delay"): "reconnect_delay",
}


def _read_yaml(path: str) -> dict:
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def load_config(path: str = "config/config.yaml") -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Fully resolved configuration dictionary.
    """
    yaml_config = _read_yaml(path)
    settings = Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "text_model": settings.openai_text_model,
            "vision_model": settings.openai_vision_model,
            "embedding_model": settings.openai_embedding_model,
            "configured": settings.has_openai(),
        },
        "vector_store": {
            "persist_dir": settings.chromadb_persist_dir,
            "collection": settings.chromadb_collection,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def settings_from_config(path: str = "config/config.yaml", **overrides: Any) -> Settings:
    """Build :class:`Settings` with YAML tunables as defaults.

    Environment variables still win: a YAML value is only passed when the
    matching field was not set in the environment or ``.env``.
    """
    yaml_config = _read_yaml(path)
    env_set = Settings().model_fields_set
    kwargs: dict[str, Any] = {}
    for (section, key), field in _YAML_TO_SETTINGS.items():
        value = yaml_config.get(section, {}).get(key)
        if value is not None and field not in env_set:
            kwargs[field] = value
    kwargs.update(overrides)
    return Settings(**kwargs)


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
