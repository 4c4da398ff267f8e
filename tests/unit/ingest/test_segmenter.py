"""Tests for the overlapping fragment segmenter."""

from __future__ import annotations

import re

import pytest

from knowledge_engine.ingest.segmenter import Segment, Segmenter


def _sentences(n: int) -> str:
    return " ".join(f"Sentence number {i} is here." for i in range(n))


def test_defaults():
    s = Segmenter()
    assert s.chunk_size == 1000
    assert s.overlap == 200


@pytest.mark.parametrize("chunk_size, overlap", [(0, 0), (10, 10), (10, -1), (10, 20)])
def test_invalid_parameters(chunk_size, overlap):
    with pytest.raises(ValueError):
        Segmenter(chunk_size=chunk_size, overlap=overlap)


def test_empty_text_yields_nothing():
    assert list(Segmenter().segment("")) == []
    assert list(Segmenter().segment("  \n\n \t")) == []


def test_short_text_single_fragment():
    segs = list(Segmenter().segment("The cat sat."))
    assert segs == [Segment(ordinal=0, text="The cat sat.")]


def test_paragraphs_packed_together_when_they_fit():
    segs = list(Segmenter().segment("First paragraph.\n\n\nSecond paragraph."))
    assert [s.text for s in segs] == ["First paragraph.\n\nSecond paragraph."]


def test_fragments_never_exceed_chunk_size():
    text = "\n\n".join(_sentences(12) for _ in range(5))
    segmenter = Segmenter(chunk_size=120, overlap=40)
    segs = list(segmenter.segment(text))
    assert len(segs) > 1
    assert all(0 < len(s.text) <= 120 for s in segs)


def test_ordinals_contiguous_from_zero():
    segs = list(Segmenter(chunk_size=100, overlap=20).segment(_sentences(30)))
    assert [s.ordinal for s in segs] == list(range(len(segs)))


def test_consecutive_fragments_overlap():
    segmenter = Segmenter(chunk_size=100, overlap=30)
    segs = [s.text for s in segmenter.segment(_sentences(20))]
    assert len(segs) > 2
    for prev, nxt in zip(segs, segs[1:]):
        assert any(prev.endswith(nxt[:k]) for k in range(1, 31)), (prev, nxt)


def test_zero_overlap_has_no_repeated_text():
    segmenter = Segmenter(chunk_size=100, overlap=0)
    segs = [s.text for s in segmenter.segment(_sentences(20))]
    assert " ".join(segs) == _sentences(20)


def test_every_word_is_covered():
    text = _sentences(40)
    segs = Segmenter(chunk_size=90, overlap=25).segment(text)
    covered = set()
    for s in segs:
        covered.update(re.findall(r"\w+", s.text))
    assert set(re.findall(r"\w+", text)) <= covered


def test_fragments_follow_document_order():
    segs = [s.text for s in Segmenter(chunk_size=100, overlap=20).segment(_sentences(20))]
    assert segs[0].startswith("Sentence number 0 ")
    assert segs[-1].endswith("Sentence number 19 is here.")


def test_long_word_is_hard_truncated():
    segs = [s.text for s in Segmenter(chunk_size=10, overlap=0).segment("x" * 25)]
    assert segs == ["x" * 10, "x" * 10, "x" * 5]


def test_long_sentence_split_on_whitespace():
    words = " ".join(f"w{i:03d}" for i in range(50))
    segs = [s.text for s in Segmenter(chunk_size=40, overlap=0).segment(words)]
    assert all(len(s) <= 40 for s in segs)
    assert " ".join(segs).split() == words.split()


def test_segments_are_restartable():
    segs = Segmenter(chunk_size=80, overlap=20).segment(_sentences(15))
    assert list(segs) == list(segs)


def test_deterministic_across_instances():
    text = _sentences(25)
    a = [s.text for s in Segmenter(chunk_size=70, overlap=10).segment(text)]
    b = [s.text for s in Segmenter(chunk_size=70, overlap=10).segment(text)]
    assert a == b
