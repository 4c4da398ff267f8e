"""KnowledgeEngine: the two outward operations, ``index`` and ``ask``.

The engine owns one store connection for its lifetime. Build it with
``KnowledgeEngine.open(config)`` (a context manager that closes the
connection) or pass collaborators explicitly for tests.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from knowledge_engine.config import KnowledgeConfig
from knowledge_engine.db.connection import Database
from knowledge_engine.db.migrations import initialize
from knowledge_engine.db.repository import Repository
from knowledge_engine.errors import StorageError
from knowledge_engine.ingest.indexer import SupportsEmbed
from knowledge_engine.ingest.pipeline import IndexReport, index_directory
from knowledge_engine.ingest.segmenter import Segmenter
from knowledge_engine.rag.llm_client import Embedder, Generator
from knowledge_engine.rag.query import Answer, QueryEngine, SupportsComplete


class KnowledgeEngine:
    def __init__(
        self,
        repo: Repository,
        embedder: SupportsEmbed,
        generator: SupportsComplete,
        config: KnowledgeConfig | None = None,
    ) -> None:
        self.config = config or KnowledgeConfig()
        self.repo = repo
        self._embedder = embedder
        self._segmenter = Segmenter(
            chunk_size=self.config.chunking.chunk_size,
            overlap=self.config.chunking.overlap,
        )
        self._query_engine = QueryEngine(
            repo, embedder, generator, top_k=self.config.retrieval.top_k
        )

    @classmethod
    @contextmanager
    def open(cls, config: KnowledgeConfig) -> Iterator[KnowledgeEngine]:
        """Connect to the configured store, migrate it, and yield an engine.

        Raises:
            StorageError: The store cannot be opened.
        """
        conn = connect_store(config.store.url)
        try:
            e = config.embedding
            embedder = Embedder(
                e.model,
                max_attempts=e.max_attempts,
                base_delay=e.base_delay,
                max_delay=e.max_delay,
            )
            g = config.generation
            generator = Generator(g.model, max_tokens=g.max_tokens, temperature=g.temperature)
            yield cls(Repository(conn), embedder, generator, config)
        finally:
            conn.close()

    async def index(self, root_path: Path | str) -> IndexReport:
        """Ingest, segment and index every new or changed document under *root_path*."""
        return await index_directory(
            Path(root_path),
            self.repo,
            self._embedder,
            self._segmenter,
            concurrency=self.config.embedding.concurrency,
            extensions=self.config.ingest.extensions,
            exclude=self.config.ingest.exclude,
        )

    async def ask(self, question: str, top_k: int | None = None) -> Answer:
        """Answer *question* from the indexed fragments."""
        return await self._query_engine.ask(question, top_k=top_k)


def connect_store(url: str | Path) -> sqlite3.Connection:
    """Open the store at *url* and apply pending migrations."""
    conn = Database(url).connect()
    try:
        initialize(conn)
    except sqlite3.Error as exc:
        conn.close()
        raise StorageError(f"Cannot initialise database schema: {exc}") from exc
    return conn
