"""Tests for exhaustive cosine-similarity ranking."""

from __future__ import annotations

import pytest

from knowledge_engine.db.models import Fragment
from knowledge_engine.errors import DimensionMismatchError
from knowledge_engine.rag.retriever import rank_fragments


def _frag(id: int, embedding: list[float], text: str = "") -> Fragment:
    return Fragment(
        id=id,
        document_id=1,
        ordinal=id,
        text=text or f"fragment {id}",
        embedding=embedding,
        path="/docs/a.md",
    )


def test_ranks_by_descending_similarity():
    frags = [_frag(1, [0.0, 1.0]), _frag(2, [1.0, 0.0]), _frag(3, [1.0, 1.0])]
    ranked = rank_fragments([1.0, 0.1], frags, top_k=3)
    assert [s.fragment.id for s in ranked] == [2, 3, 1]
    assert [s.rank for s in ranked] == [1, 2, 3]
    assert ranked[0].similarity >= ranked[1].similarity >= ranked[2].similarity


def test_top_k_truncates():
    frags = [_frag(i, [1.0, float(i)]) for i in range(1, 6)]
    assert len(rank_fragments([1.0, 0.0], frags, top_k=2)) == 2


def test_fewer_than_k_returns_all():
    frags = [_frag(1, [1.0, 0.0]), _frag(2, [0.0, 1.0])]
    assert len(rank_fragments([1.0, 1.0], frags, top_k=10)) == 2


def test_ties_broken_by_ascending_id():
    frags = [_frag(7, [2.0, 0.0]), _frag(3, [1.0, 0.0]), _frag(5, [5.0, 0.0])]
    ranked = rank_fragments([1.0, 0.0], frags, top_k=3)
    assert [s.fragment.id for s in ranked] == [3, 5, 7]


def test_ranking_is_deterministic():
    frags = [_frag(i, [float(i % 3), 1.0]) for i in range(1, 20)]
    first = [s.fragment.id for s in rank_fragments([1.0, 0.5], frags, top_k=5)]
    second = [s.fragment.id for s in rank_fragments([1.0, 0.5], list(reversed(frags)), top_k=5)]
    assert first == second


def test_empty_fragments():
    assert rank_fragments([1.0], [], top_k=3) == []


def test_dimension_mismatch_raises():
    frags = [_frag(1, [1.0, 0.0, 0.0])]
    with pytest.raises(DimensionMismatchError) as exc_info:
        rank_fragments([1.0, 0.0], frags, top_k=1)
    assert exc_info.value.expected == 3
    assert exc_info.value.actual == 2


def test_invalid_top_k():
    with pytest.raises(ValueError):
        rank_fragments([1.0], [_frag(1, [1.0])], top_k=0)
