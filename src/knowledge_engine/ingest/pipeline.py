"""The ``index`` operation: ingestion → segmentation → indexing.

Documents are processed one after another. A failure confined to one
document (extraction, embedding, storage of its fragments) is recorded in the
report and the run continues with the next document.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from knowledge_engine.db.repository import Repository
from knowledge_engine.errors import (
    EmbeddingError,
    EmbeddingModelMismatch,
    IngestionError,
    StorageError,
)
from knowledge_engine.ingest.indexer import Indexer, SupportsEmbed
from knowledge_engine.ingest.scanner import DEFAULT_EXTENSIONS, FileFailure, scan
from knowledge_engine.ingest.segmenter import Segmenter

logger = logging.getLogger(__name__)


@dataclass
class IndexReport:
    """Outcome of one ``index`` run."""

    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[FileFailure] = field(default_factory=list)
    fragments: int = 0

    @property
    def processed_count(self) -> int:
        return len(self.processed)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


def check_embedding_model(repo: Repository, model: str) -> None:
    """Refuse to mix embedding models within one index.

    Raises:
        EmbeddingModelMismatch: If the index was built with another model.
    """
    meta = repo.get_index_meta()
    if meta is not None and meta.embedding_model != model:
        raise EmbeddingModelMismatch(meta.embedding_model, model)


async def index_directory(
    root: Path,
    repo: Repository,
    embedder: SupportsEmbed,
    segmenter: Segmenter,
    *,
    concurrency: int = 4,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = (),
) -> IndexReport:
    """Bring the store in line with the documents under *root*.

    Raises:
        EmbeddingModelMismatch: Configured model differs from the index's.
        IngestionError: *root* is not a directory.
    """
    check_embedding_model(repo, embedder.model)
    batch = scan(root, repo, extensions=extensions, exclude=exclude)
    report = IndexReport(skipped=list(batch.skipped), failed=list(batch.failures))

    if not batch.items:
        logger.info("No new or updated documents to process.")
        return report

    indexer = Indexer(repo, embedder, concurrency=concurrency)
    for item in batch.items:
        try:
            result = await indexer.index_document(item, segmenter.segment(item.text))
        except (EmbeddingError, IngestionError, StorageError) as exc:
            logger.warning("Failed to index %s: %s", item.path, exc)
            report.failed.append(FileFailure(item.path, str(exc)))
            continue
        report.processed.append(item.path)
        report.fragments += result.fragment_count

    logger.info(
        "Index run complete: %d processed, %d skipped, %d failed",
        report.processed_count,
        report.skipped_count,
        report.failed_count,
    )
    return report
