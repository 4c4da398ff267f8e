"""The ``ask`` operation: embed, rank, assemble, synthesize."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from knowledge_engine.db.repository import Repository
from knowledge_engine.errors import (
    DimensionMismatchError,
    EmptyIndexError,
    QueryError,
    QueryModelMismatchError,
)
from knowledge_engine.ingest.indexer import SupportsEmbed
from knowledge_engine.rag.assembler import build_context, build_messages
from knowledge_engine.rag.retriever import ScoredFragment, rank_fragments

logger = logging.getLogger(__name__)


class SupportsComplete(Protocol):
    async def complete(self, messages: list[dict[str, str]]) -> str: ...


@dataclass
class Answer:
    """Synthesized answer plus the fragments it was generated from."""

    text: str
    sources: list[ScoredFragment] = field(default_factory=list)
    context: str = ""


class QueryEngine:
    """Answer questions from the committed fragments in the store.

    Args:
        repo: Open Repository (read access only).
        embedder: Must be the same embedding model used for indexing.
        generator: Generative collaborator.
        top_k: Default number of fragments placed in the context.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: SupportsEmbed,
        generator: SupportsComplete,
        top_k: int = 5,
    ) -> None:
        if top_k < 1:
            raise ValueError("top_k must be >= 1")
        self._repo = repo
        self._embedder = embedder
        self._generator = generator
        self.top_k = top_k

    async def retrieve(self, question: str, top_k: int | None = None) -> list[ScoredFragment]:
        """Return the top-K fragments for *question* without calling the generator.

        Raises:
            QueryError: Empty question or top_k < 1.
            EmptyIndexError: No fragments stored (no model is called).
            QueryModelMismatchError: The embedder is not the model the index was built with.
            DimensionMismatchError: Question and index vectors differ in length.
            EmbeddingError: The question could not be embedded.
        """
        if not question.strip():
            raise QueryError("Question must not be empty.")
        k = self.top_k if top_k is None else top_k
        if k < 1:
            raise QueryError("top_k must be >= 1")

        # One snapshot read: the fragment set is either pre- or post-update.
        fragments = self._repo.list_fragments()
        if not fragments:
            raise EmptyIndexError()

        meta = self._repo.get_index_meta()
        if meta is not None and meta.embedding_model != self._embedder.model:
            raise QueryModelMismatchError(meta.embedding_model, self._embedder.model)

        question_embedding = await self._embedder.embed(question)
        if meta is not None and meta.dimensions != len(question_embedding):
            raise DimensionMismatchError(expected=meta.dimensions, actual=len(question_embedding))

        ranked = rank_fragments(question_embedding, fragments, k)
        logger.info("Retrieved %d of %d fragments", len(ranked), len(fragments))
        return ranked

    async def ask(self, question: str, top_k: int | None = None) -> Answer:
        """Answer *question* from the index and return the model's text verbatim.

        Raises:
            QueryError: Or one of its subclasses (EmptyIndexError,
                DimensionMismatchError, GenerationError).
            EmbeddingError: The question could not be embedded.
        """
        ranked = await self.retrieve(question, top_k)
        context = build_context(ranked)
        text = await self._generator.complete(build_messages(question, context))
        return Answer(text=text, sources=ranked, context=context)
