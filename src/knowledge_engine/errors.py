"""Exception hierarchy for the knowledge engine.

Errors local to one document or one question are isolated by the caller;
only ConfigError and StorageError raised while opening the store are fatal
to the process.
"""

from __future__ import annotations


class KnowledgeEngineError(Exception):
    """Base class for every error raised by knowledge_engine."""


class ConfigError(KnowledgeEngineError, ValueError):
    """Invalid or forbidden configuration, missing credentials."""


class EmbeddingModelMismatch(ConfigError):
    """The index was built with a different embedding model than configured."""

    def __init__(self, index_model: str, config_model: str) -> None:
        super().__init__(
            f"Index was built with embedding model '{index_model}' "
            f"but the config has '{config_model}'."
        )
        self.index_model = index_model
        self.config_model = config_model


class StorageError(KnowledgeEngineError):
    """A store operation failed; nothing from the current unit was committed."""


class IngestionError(KnowledgeEngineError):
    """The ingestion root cannot be scanned."""


class ExtractionError(KnowledgeEngineError):
    """Text could not be extracted from one file."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class EmbeddingError(KnowledgeEngineError):
    """Embedding request failed for good (retries exhausted or malformed response)."""


class TransientEmbeddingError(EmbeddingError):
    """Network or rate-limit failure that is worth retrying."""


class QueryError(KnowledgeEngineError):
    """A question could not be answered."""

    stage = "query"


class EmptyIndexError(QueryError):
    """No fragments have been indexed yet."""

    stage = "retrieval"

    def __init__(self) -> None:
        super().__init__("The index is empty. Run 'kengine index' first.")


class DimensionMismatchError(QueryError):
    """Two embedding vectors that must be compared have different lengths."""

    stage = "retrieval"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Embedding dimensionality mismatch: index has {expected}, got {actual}."
        )
        self.expected = expected
        self.actual = actual


class QueryModelMismatchError(QueryError):
    """The question would be embedded by a different model than the index."""

    stage = "retrieval"

    def __init__(self, index_model: str, query_model: str) -> None:
        super().__init__(
            f"Index was built with embedding model '{index_model}' "
            f"but questions are embedded with '{query_model}'."
        )
        self.index_model = index_model
        self.query_model = query_model


class GenerationError(QueryError):
    """The generative model failed or returned an unusable response."""

    stage = "generation"
