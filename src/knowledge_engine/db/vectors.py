"""Embedding serialization and cosine similarity.

Vectors are stored as fixed-width float32 blobs, the same layout sqlite-vec
uses, so a stored embedding is always exactly ``4 * dimensions`` bytes.
"""

from __future__ import annotations

import math
import struct
from collections.abc import Sequence

import sqlite_vec

from knowledge_engine.errors import DimensionMismatchError, StorageError

_FLOAT32_BYTES = 4


def serialize_embedding(embedding: Sequence[float]) -> bytes:
    """Pack *embedding* into a float32 blob."""
    if not embedding:
        raise ValueError("Cannot serialize an empty embedding.")
    return sqlite_vec.serialize_float32(list(embedding))


def deserialize_embedding(blob: bytes) -> list[float]:
    """Unpack a float32 blob produced by serialize_embedding().

    Raises:
        StorageError: If the blob length is not a multiple of 4 bytes.
    """
    if len(blob) % _FLOAT32_BYTES != 0:
        raise StorageError(
            f"Invalid embedding blob: {len(blob)} bytes is not a multiple of {_FLOAT32_BYTES}."
        )
    count = len(blob) // _FLOAT32_BYTES
    return list(struct.unpack(f"{count}f", blob))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.

    Returns 0.0 if either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(expected=len(b), actual=len(a))
    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)
