"""Dense retrieval by exhaustive cosine-similarity scan.

Every stored fragment is scored against the question vector; the top-K are
returned by descending similarity, ties broken by ascending fragment id so
repeated queries over the same index are deterministic.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from knowledge_engine.db.models import Fragment
from knowledge_engine.db.vectors import cosine_similarity
from knowledge_engine.errors import DimensionMismatchError


@dataclass
class ScoredFragment:
    """A retrieved fragment with its similarity score and 1-based rank."""

    fragment: Fragment
    similarity: float
    rank: int = 0


def rank_fragments(
    query_embedding: Sequence[float],
    fragments: Sequence[Fragment],
    top_k: int,
) -> list[ScoredFragment]:
    """Score *fragments* against *query_embedding* and return the best *top_k*.

    If fewer than *top_k* fragments exist, all of them are returned.

    Raises:
        ValueError: If *top_k* < 1.
        DimensionMismatchError: If any fragment vector differs in length from
            the query vector.
    """
    if top_k < 1:
        raise ValueError("top_k must be >= 1")

    dims = len(query_embedding)
    scored: list[ScoredFragment] = []
    for fragment in fragments:
        if fragment.dimensions != dims:
            raise DimensionMismatchError(expected=fragment.dimensions, actual=dims)
        scored.append(
            ScoredFragment(
                fragment=fragment,
                similarity=cosine_similarity(query_embedding, fragment.embedding),
            )
        )

    scored.sort(key=lambda s: (-s.similarity, s.fragment.id))
    top = scored[:top_k]
    for i, s in enumerate(top):
        s.rank = i + 1
    return top
