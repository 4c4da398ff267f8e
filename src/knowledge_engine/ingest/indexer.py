"""Indexing stage: embed a document's fragments and commit them atomically.

Embedding requests for one document run concurrently, bounded by an
``asyncio.Semaphore``. Each request carries its fragment ordinal, so the
stored order never depends on completion order. If any request fails for
good, the others are cancelled and nothing is written: the document keeps
its previous fragments (or stays absent if it is new).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from knowledge_engine.db.models import Document, NewFragment
from knowledge_engine.db.repository import Repository
from knowledge_engine.errors import EmbeddingError, IngestionError
from knowledge_engine.ingest.scanner import WorkItem
from knowledge_engine.ingest.segmenter import Segment

logger = logging.getLogger(__name__)


class SupportsEmbed(Protocol):
    model: str

    async def embed(self, text: str) -> list[float]: ...


@dataclass
class IndexedDocument:
    document: Document
    fragment_count: int


class Indexer:
    """Embed fragments with bounded concurrency and replace them in the store.

    Args:
        repo: Open Repository.
        embedder: Embedding collaborator (see ``rag.llm_client.Embedder``).
        concurrency: Maximum outstanding embedding requests.
    """

    def __init__(self, repo: Repository, embedder: SupportsEmbed, concurrency: int = 4) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._repo = repo
        self._embedder = embedder
        self.concurrency = concurrency

    async def index_document(
        self, item: WorkItem, segments: Iterable[Segment]
    ) -> IndexedDocument:
        """Embed *segments* of *item* and swap them in as the document's fragments.

        Raises:
            IngestionError: If segmentation produced no fragments.
            EmbeddingError: If any fragment cannot be embedded, or vectors
                disagree in dimensionality with each other or the index.
            StorageError: If the transactional replace fails.
        """
        segments = list(segments)
        if not segments:
            raise IngestionError(f"'{item.path}' produced no fragments.")

        fragments = await self._embed_all(segments)
        self._check_dimensions(item.path, fragments)

        document = self._repo.replace_document(
            item.path,
            item.content_hash,
            fragments,
            embedding_model=self._embedder.model,
        )
        logger.info("Indexed %s (%d fragments)", item.path, len(fragments))
        return IndexedDocument(document=document, fragment_count=len(fragments))

    async def _embed_all(self, segments: list[Segment]) -> list[NewFragment]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _embed_one(segment: Segment) -> NewFragment:
            async with semaphore:
                vector = await self._embedder.embed(segment.text)
            return NewFragment(ordinal=segment.ordinal, text=segment.text, embedding=vector)

        tasks = [asyncio.create_task(_embed_one(s)) for s in segments]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return sorted(results, key=lambda f: f.ordinal)

    def _check_dimensions(self, path: str, fragments: list[NewFragment]) -> None:
        dims = {len(f.embedding) for f in fragments}
        if len(dims) != 1:
            raise EmbeddingError(
                f"Embeddings for '{path}' have inconsistent dimensionality: {sorted(dims)}"
            )
        (actual,) = dims
        meta = self._repo.get_index_meta()
        if meta is not None and meta.dimensions != actual:
            raise EmbeddingError(
                f"Embeddings for '{path}' have {actual} dimensions; "
                f"the index was built with {meta.dimensions}."
            )
