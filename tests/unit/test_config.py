"""Tests for kengine configuration loading."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest

from knowledge_engine.config import KnowledgeConfig, load_config, validate_config
from knowledge_engine.errors import ConfigError


def _write_yaml(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def no_global(tmp_path):
    return tmp_path / "global" / "config.yaml"


# ------------------------------------------------------------------
# Defaults
# ------------------------------------------------------------------


def test_defaults_without_files(tmp_path, no_global):
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.store.url == "sqlite:///.kengine.db"
    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.concurrency == 4
    assert cfg.chunking.chunk_size == 1000
    assert cfg.chunking.overlap == 200
    assert cfg.retrieval.top_k == 5
    assert cfg.ingest.extensions == [".txt", ".md", ".markdown", ".pdf"]


# ------------------------------------------------------------------
# Layering
# ------------------------------------------------------------------


def test_project_file_overrides_defaults(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "retrieval:\n  top_k: 8\nchunking:\n  overlap: 50\n")
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.retrieval.top_k == 8
    assert cfg.chunking.overlap == 50
    assert cfg.chunking.chunk_size == 1000


def test_project_overrides_global(tmp_path):
    global_path = _write_yaml(
        tmp_path / "global" / "config.yaml",
        "embedding:\n  model: ollama/nomic-embed-text\n  concurrency: 2\n",
    )
    _write_yaml(tmp_path / "kengine.yaml", "embedding:\n  concurrency: 6\n")
    cfg = load_config(tmp_path, global_config_path=global_path)
    assert cfg.embedding.model == "ollama/nomic-embed-text"
    assert cfg.embedding.concurrency == 6


def test_env_overrides_files(tmp_path, no_global, monkeypatch):
    _write_yaml(tmp_path / "kengine.yaml", "store:\n  url: sqlite:///from-file.db\n")
    monkeypatch.setenv("KENGINE_DATABASE_URL", "sqlite:///from-env.db")
    monkeypatch.setenv("KENGINE_GENERATION_MODEL", "anthropic/claude-3-5-haiku")
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.store.url == "sqlite:///from-env.db"
    assert cfg.generation.model == "anthropic/claude-3-5-haiku"


def test_database_url_fallback(tmp_path, no_global, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///legacy.db")
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.store.url == "sqlite:///legacy.db"


def test_kengine_url_wins_over_database_url(tmp_path, no_global, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///legacy.db")
    monkeypatch.setenv("KENGINE_DATABASE_URL", "sqlite:///new.db")
    assert load_config(tmp_path, global_config_path=no_global).store.url == "sqlite:///new.db"


def test_extensions_normalised(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "ingest:\n  extensions: [MD, .TXT]\n  exclude: ['*.tmp']\n")
    cfg = load_config(tmp_path, global_config_path=no_global)
    assert cfg.ingest.extensions == [".md", ".txt"]
    assert cfg.ingest.exclude == ["*.tmp"]


# ------------------------------------------------------------------
# Validation
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "key",
    ["api_key", "openai_api_key", "secret", "password", "access_token"],
)
def test_api_keys_forbidden(tmp_path, no_global, key):
    _write_yaml(tmp_path / "kengine.yaml", f"embedding:\n  {key}: sk-123\n")
    with pytest.raises(ConfigError, match="forbidden"):
        load_config(tmp_path, global_config_path=no_global)


def test_api_keys_forbidden_in_global(tmp_path):
    global_path = _write_yaml(tmp_path / "g" / "config.yaml", "api_key: sk-123\n")
    with pytest.raises(ConfigError):
        load_config(tmp_path, global_config_path=global_path)


def test_max_tokens_is_not_a_secret(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "generation:\n  max_tokens: 512\n")
    assert load_config(tmp_path, global_config_path=no_global).generation.max_tokens == 512


def test_unknown_section_warns(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "reranker:\n  model: x\n")
    with pytest.warns(UserWarning, match="reranker"):
        load_config(tmp_path, global_config_path=no_global)


def test_known_sections_do_not_warn(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "retrieval:\n  top_k: 3\n")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        load_config(tmp_path, global_config_path=no_global)


def test_invalid_yaml(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "retrieval: [unclosed\n")
    with pytest.raises(ConfigError, match="Cannot parse"):
        load_config(tmp_path, global_config_path=no_global)


def test_non_mapping_yaml(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(tmp_path, global_config_path=no_global)


def test_non_numeric_value(tmp_path, no_global):
    _write_yaml(tmp_path / "kengine.yaml", "retrieval:\n  top_k: many\n")
    with pytest.raises(ConfigError, match="Invalid config value"):
        load_config(tmp_path, global_config_path=no_global)


@pytest.mark.parametrize(
    "section, field, value",
    [
        ("retrieval", "top_k", 0),
        ("chunking", "overlap", 1000),
        ("chunking", "chunk_size", 0),
        ("embedding", "concurrency", 0),
        ("embedding", "max_attempts", 0),
        ("embedding", "base_delay", -1.0),
    ],
)
def test_validate_config_rejects(section, field, value):
    cfg = KnowledgeConfig()
    setattr(getattr(cfg, section), field, value)
    with pytest.raises(ConfigError):
        validate_config(cfg)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)
