"""Shared pytest fixtures."""

from __future__ import annotations

import asyncio
import re

import pytest

from knowledge_engine.db.connection import Database
from knowledge_engine.db.migrations import initialize
from knowledge_engine.db.repository import Repository
from knowledge_engine.errors import EmbeddingError

EMBED_MODEL = "openai/text-embedding-3-small"


class VocabularyEmbedder:
    """Deterministic bag-of-words embedder: each distinct word owns one dimension.

    *delays* maps a text to the seconds its request should take, so tests can
    force completion order; *fail_on* is a set of texts that raise.
    """

    def __init__(self, dims: int = 64, model: str = EMBED_MODEL) -> None:
        self.dims = dims
        self.vocabulary: dict[str, int] = {}
        self.model = model
        self.calls: list[str] = []
        self.delays: dict[str, float] = {}
        self.fail_on: set[str] = set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(text, 0))
            if text in self.fail_on:
                raise EmbeddingError(f"refused: {text[:20]}")
            vec = [0.0] * self.dims
            for word in re.findall(r"\w+", text.lower()):
                idx = self.vocabulary.setdefault(word, len(self.vocabulary) % self.dims)
                vec[idx] += 1.0
            return vec
        finally:
            self.in_flight -= 1


class MappingEmbedder:
    """Returns fixed vectors for known texts."""

    def __init__(self, vectors: dict[str, list[float]], model: str = EMBED_MODEL) -> None:
        self.vectors = vectors
        self.model = model
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self.vectors[text])


class EchoGenerator:
    """Answers with the body of the first chunk in the context."""

    def __init__(self) -> None:
        self.calls: list[list[dict[str, str]]] = []

    async def complete(self, messages: list[dict[str, str]]) -> str:
        self.calls.append(messages)
        user = messages[-1]["content"]
        match = re.search(r"\[chunk 1\][^\n]*\n(.*?)(?:\n---|\Z)", user, re.DOTALL)
        return match.group(1).strip() if match else "no context"


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".kengine.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def embedder():
    return VocabularyEmbedder()


@pytest.fixture
def generator():
    return EchoGenerator()


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch, tmp_path):
    """Keep user config and env overrides out of tests."""
    monkeypatch.setattr(
        "knowledge_engine.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml"
    )
    for var in (
        "KENGINE_DATABASE_URL",
        "DATABASE_URL",
        "KENGINE_EMBEDDING_MODEL",
        "KENGINE_GENERATION_MODEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def mapping_embedder():
    """Factory: ``mapping_embedder({text: vector, ...})``."""
    return MappingEmbedder
