"""Domain models for the knowledge store."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Document:
    id: int
    path: str
    content_hash: str
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class IndexMeta:
    """Embedding model and dimensionality every stored vector was produced with."""

    embedding_model: str
    dimensions: int


@dataclass
class NewFragment:
    """A fragment that has been embedded but not yet persisted."""

    ordinal: int
    text: str
    embedding: list[float]


@dataclass
class Fragment:
    id: int
    document_id: int
    ordinal: int
    text: str
    embedding: list[float]
    created_at: str | None = None
    path: str = ""  # owning document path, filled by scan queries

    @property
    def dimensions(self) -> int:
        return len(self.embedding)
