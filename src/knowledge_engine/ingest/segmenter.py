"""Segmentation stage: split document text into bounded, overlapping fragments.

Strategy:
  1. Split on paragraph boundaries (blank lines).
  2. Paragraphs longer than ``chunk_size`` are split into sentences.
  3. Sentences still too long are split on whitespace.
  4. A single word longer than ``chunk_size`` is hard-truncated.
  5. Units are packed greedily into fragments of at most ``chunk_size``
     characters. Every fragment after the first starts with up to
     ``overlap`` characters taken from the end of the previous one.

Sizes are measured in characters.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

_PARAGRAPH_RE = re.compile(r"\n\s*\n")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")

_PARA_SEP = "\n\n"
_WORD_SEP = " "


@dataclass(frozen=True)
class Segment:
    ordinal: int
    text: str


class Segments:
    """Lazy, restartable sequence of segments for one text.

    Each iteration runs the splitter again from the start, so the object can
    be consumed more than once and always yields the same fragments.
    """

    def __init__(self, segmenter: Segmenter, text: str) -> None:
        self._segmenter = segmenter
        self._text = text

    def __iter__(self) -> Iterator[Segment]:
        for ordinal, text in enumerate(self._segmenter._pack(self._text)):
            yield Segment(ordinal=ordinal, text=text)


class Segmenter:
    """Split text into overlapping fragments of bounded size.

    Args:
        chunk_size: Maximum fragment length in characters.
        overlap: Characters carried over from the end of one fragment to the
            start of the next. Must be smaller than ``chunk_size``.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if not 0 <= overlap < chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def segment(self, text: str) -> Segments:
        """Return the fragments of *text* as a lazy, restartable iterable."""
        return Segments(self, text)

    # ------------------------------------------------------------------
    # Packing
    # ------------------------------------------------------------------

    def _pack(self, text: str) -> Iterator[str]:
        current = ""
        for unit, sep in self._units(text):
            if not current:
                current = unit
                continue
            if len(current) + len(sep) + len(unit) <= self.chunk_size:
                current = current + sep + unit
                continue

            yield current
            room = self.chunk_size - len(sep) - len(unit)
            tail = _tail(current, min(self.overlap, room))
            current = tail + sep + unit if tail else unit

        if current:
            yield current

    # ------------------------------------------------------------------
    # Unit splitting
    # ------------------------------------------------------------------

    def _units(self, text: str) -> Iterator[tuple[str, str]]:
        """Yield ``(unit, separator_before_unit)`` pairs, each unit <= chunk_size."""
        limit = self.chunk_size
        for para in _PARAGRAPH_RE.split(text):
            para = para.strip()
            if not para:
                continue
            sep = _PARA_SEP
            if len(para) <= limit:
                yield para, sep
                continue
            for sentence in _SENTENCE_RE.split(para):
                sentence = sentence.strip()
                if not sentence:
                    continue
                if len(sentence) <= limit:
                    yield sentence, sep
                else:
                    for i, (piece, piece_sep) in enumerate(_split_words(sentence, limit)):
                        yield piece, sep if i == 0 else piece_sep
                sep = _WORD_SEP


def _split_words(text: str, limit: int) -> Iterator[tuple[str, str]]:
    """Group words into pieces <= *limit*; hard-cut continuations have no separator."""
    current = ""
    for word in text.split():
        if len(word) > limit:
            if current:
                yield current, _WORD_SEP
                current = ""
            # Hard truncation: no natural boundary fits.
            for start in range(0, len(word), limit):
                yield word[start:start + limit], _WORD_SEP if start == 0 else ""
            continue
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= limit:
            current = f"{current} {word}"
        else:
            yield current, _WORD_SEP
            current = word
    if current:
        yield current, _WORD_SEP


def _tail(text: str, size: int) -> str:
    """Return at most *size* trailing characters of *text*, starting at a word boundary."""
    if size <= 0:
        return ""
    if len(text) <= size:
        return text.strip()
    cut = text[-size:]
    # Drop a partial leading word when a boundary exists inside the window.
    boundary = re.search(r"\s", cut)
    if boundary is not None and cut[boundary.end():].strip():
        cut = cut[boundary.end():]
    return cut.strip()
