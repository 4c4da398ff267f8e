"""kengine configuration loader.

Layers, lowest priority first:
  1. Hardcoded defaults (the dataclasses below)
  2. Global ~/.kengine/config.yaml
  3. Per-project kengine.yaml (current directory unless told otherwise)
  4. Environment: KENGINE_DATABASE_URL (or DATABASE_URL),
     KENGINE_EMBEDDING_MODEL, KENGINE_GENERATION_MODEL
  5. CLI flags, applied by the caller

API keys never live in config files; they are read from the environment by
``rag.llm_client.validate_api_key``. YAML is only ever read with safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from knowledge_engine.errors import ConfigError

_GLOBAL_CONFIG_PATH: Path = Path.home() / ".kengine" / "config.yaml"
_PROJECT_CONFIG_NAME: str = "kengine.yaml"

DEFAULT_DATABASE_URL = "sqlite:///.kengine.db"

# Key names that look like credentials. max_tokens and top_k must not match.
_SECRET_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)|_token$|^token$|_secret$|^secret$|passw(?:ord|d)|credential",
    re.IGNORECASE,
)


@dataclass
class StoreCfg:
    """store: location of the SQLite knowledge base."""

    url: str = DEFAULT_DATABASE_URL


@dataclass
class EmbeddingCfg:
    """embedding: model plus concurrency and retry policy for embedding requests."""

    model: str = "openai/text-embedding-3-small"
    concurrency: int = 4
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 20.0


@dataclass
class GenerationCfg:
    """generation: the model that writes answers."""

    model: str = "openai/gpt-4o"
    max_tokens: int = 1024
    temperature: float = 0.0


@dataclass
class ChunkingCfg:
    """chunking: fragment size and overlap, in characters."""

    chunk_size: int = 1000
    overlap: int = 200


@dataclass
class RetrievalCfg:
    top_k: int = 5


@dataclass
class IngestCfg:
    extensions: list[str] = field(
        default_factory=lambda: [".txt", ".md", ".markdown", ".pdf"]
    )
    exclude: list[str] = field(default_factory=list)


@dataclass
class KnowledgeConfig:
    store: StoreCfg = field(default_factory=StoreCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)


_SECTIONS: dict[str, type] = {f.name: f.default_factory for f in fields(KnowledgeConfig)}


def validate_config(cfg: KnowledgeConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    problems = []
    if cfg.chunking.chunk_size < 1:
        problems.append("chunking.chunk_size must be >= 1")
    elif not 0 <= cfg.chunking.overlap < cfg.chunking.chunk_size:
        problems.append("chunking.overlap must be >= 0 and smaller than chunk_size")
    if cfg.retrieval.top_k < 1:
        problems.append("retrieval.top_k must be >= 1")
    if cfg.embedding.concurrency < 1:
        problems.append("embedding.concurrency must be >= 1")
    if cfg.embedding.max_attempts < 1:
        problems.append("embedding.max_attempts must be >= 1")
    if min(cfg.embedding.base_delay, cfg.embedding.max_delay) < 0:
        problems.append("embedding delays must be >= 0")
    if not cfg.store.url:
        problems.append("store.url must not be empty")
    if problems:
        raise ConfigError("; ".join(problems))


# ---------------------------------------------------------------------------
# Reading one layer
# ---------------------------------------------------------------------------


def _walk_keys(data: dict[str, Any], prefix: str = "") -> Iterator[tuple[str, str]]:
    """Yield ``(dotted_path, key)`` for every mapping key, depth first."""
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        yield dotted, str(key)
        if isinstance(value, dict):
            yield from _walk_keys(value, dotted)


def _read_layer(path: Path) -> dict[str, Any]:
    """Parse one YAML file and reject credentials; warn about unknown sections."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must contain a mapping at the top level.")

    for dotted, key in _walk_keys(data):
        if _SECRET_KEY_RE.search(key):
            env_name = key.upper().replace("-", "_")
            raise ConfigError(
                f"'{path}' contains a forbidden key '{dotted}'. "
                f"Credentials belong in the environment (export {env_name}=...), "
                f"not in {path.name}."
            )

    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        warnings.warn(
            f"Ignoring unknown config section(s) {', '.join(unknown)} in '{path}'.",
            UserWarning,
            stacklevel=3,
        )
    return data


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = {**base}
    for key, value in override.items():
        below = merged.get(key)
        if isinstance(below, dict) and isinstance(value, dict):
            value = _merge(below, value)
        merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Building the dataclasses
# ---------------------------------------------------------------------------


def _coerce(default: Any, value: Any) -> Any:
    """Convert a raw YAML value to the type of the field's default."""
    if isinstance(default, list):
        if not isinstance(value, list):
            raise TypeError(f"expected a list, got {value!r}")
        return [str(v) for v in value]
    return type(default)(value)


def _build_section(name: str, raw: Any) -> Any:
    section = _SECTIONS[name]()
    if raw is None:
        return section
    if not isinstance(raw, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping.")
    for f in fields(section):
        if f.name in raw:
            try:
                setattr(section, f.name, _coerce(getattr(section, f.name), raw[f.name]))
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Invalid config value {name}.{f.name}: {exc}") from exc
    return section


def _normalise_extension(ext: str) -> str:
    ext = ext.lower()
    return ext if ext.startswith(".") else f".{ext}"


def _from_env(cfg: KnowledgeConfig) -> None:
    url = os.environ.get("KENGINE_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if url:
        cfg.store.url = url
    cfg.embedding.model = os.environ.get("KENGINE_EMBEDDING_MODEL") or cfg.embedding.model
    cfg.generation.model = os.environ.get("KENGINE_GENERATION_MODEL") or cfg.generation.model


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> KnowledgeConfig:
    """Merge defaults, the global and project YAML files, and the environment.

    Args:
        project_dir: Where to look for kengine.yaml (default: current directory).
        global_config_path: Replaces ~/.kengine/config.yaml, mainly for tests.

    Raises:
        ConfigError: A file is unparsable, holds a credential-like key, or the
            merged values are unusable.
    """
    layers = [
        global_config_path or _GLOBAL_CONFIG_PATH,
        (project_dir or Path.cwd()) / _PROJECT_CONFIG_NAME,
    ]
    raw: dict[str, Any] = {}
    for path in layers:
        if path.is_file():
            raw = _merge(raw, _read_layer(path))

    cfg = KnowledgeConfig(
        **{name: _build_section(name, raw.get(name)) for name in _SECTIONS}
    )
    cfg.ingest.extensions = [_normalise_extension(e) for e in cfg.ingest.extensions]
    _from_env(cfg)
    validate_config(cfg)
    return cfg
