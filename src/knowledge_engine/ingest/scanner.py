"""Ingestion stage: discover documents and detect new or changed content.

Each candidate file is fingerprinted with SHA-256 over its raw bytes. Files
whose hash matches the stored one are skipped and never reach segmentation
or indexing. New and changed files are extracted to text and returned as
work items; extraction failures are collected per file.
"""

from __future__ import annotations

import fnmatch
import hashlib
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from knowledge_engine.db.repository import Repository
from knowledge_engine.errors import ExtractionError, IngestionError
from knowledge_engine.ingest.extractors import extract_text

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = frozenset({".txt", ".md", ".markdown", ".pdf"})


@dataclass
class WorkItem:
    """A document that needs (re)indexing."""

    path: str
    text: str
    content_hash: str
    is_new: bool = True


@dataclass
class FileFailure:
    path: str
    reason: str


@dataclass
class IngestionBatch:
    items: list[WorkItem] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[FileFailure] = field(default_factory=list)


def discover(
    root: Path,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = (),
) -> list[Path]:
    """Return supported files under *root*, recursively, in sorted order.

    Hidden files and directories are skipped, as are names matching any
    *exclude* glob.

    Raises:
        IngestionError: If *root* does not exist or is not a directory.
    """
    if not root.is_dir():
        raise IngestionError(f"Document root '{root}' is not a directory.")
    exts = {e.lower() for e in extensions}
    patterns = list(exclude)

    files: list[Path] = []
    for entry in sorted(root.rglob("*")):
        rel_parts = entry.relative_to(root).parts
        if any(part.startswith(".") for part in rel_parts):
            continue
        if any(fnmatch.fnmatch(entry.name, pat) for pat in patterns):
            continue
        if entry.is_file() and entry.suffix.lower() in exts:
            files.append(entry)
    return files


def compute_hash(path: Path) -> str:
    """SHA-256 hex digest of the file's raw bytes."""
    h = hashlib.sha256()
    with path.open("rb") as fh:
        for block in iter(lambda: fh.read(65536), b""):
            h.update(block)
    return h.hexdigest()


def scan(
    root: Path,
    repo: Repository,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    exclude: Iterable[str] = (),
    extractor: Callable[[Path], str] = extract_text,
) -> IngestionBatch:
    """Compare every file under *root* with the store and collect work items.

    Documents are keyed by their resolved absolute path. Nothing is written
    to the store here.
    """
    batch = IngestionBatch()
    files = discover(root, extensions, exclude)
    logger.info("Scanning %d candidate files under %s", len(files), root)

    for file in files:
        path = str(file.resolve())
        try:
            content_hash = compute_hash(file)
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            batch.failures.append(FileFailure(path, f"cannot read file ({exc.strerror})"))
            continue

        existing = repo.get_document_by_path(path)
        if existing is not None and existing.content_hash == content_hash:
            logger.debug("Unchanged: %s", path)
            batch.skipped.append(path)
            continue

        try:
            text = extractor(file)
        except ExtractionError as exc:
            logger.warning("Skipping %s: %s", path, exc.reason)
            batch.failures.append(FileFailure(path, exc.reason))
            continue

        if existing is None:
            logger.info("New document: %s", path)
        else:
            logger.info("Changed document: %s", path)
        batch.items.append(
            WorkItem(path=path, text=text, content_hash=content_hash, is_new=existing is None)
        )

    return batch
