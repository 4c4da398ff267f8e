"""kengine: retrieval-augmented knowledge engine over a local document corpus."""

from knowledge_engine.engine import KnowledgeEngine
from knowledge_engine.errors import (
    ConfigError,
    DimensionMismatchError,
    EmbeddingError,
    EmptyIndexError,
    KnowledgeEngineError,
    QueryError,
    StorageError,
)

__all__ = [
    "KnowledgeEngine",
    "KnowledgeEngineError",
    "ConfigError",
    "StorageError",
    "EmbeddingError",
    "QueryError",
    "EmptyIndexError",
    "DimensionMismatchError",
]
