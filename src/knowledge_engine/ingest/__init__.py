"""Ingest pipeline: discovery, text extraction, segmentation, indexing."""

from knowledge_engine.ingest.indexer import IndexedDocument, Indexer
from knowledge_engine.ingest.pipeline import IndexReport, index_directory
from knowledge_engine.ingest.scanner import FileFailure, IngestionBatch, WorkItem, scan
from knowledge_engine.ingest.segmenter import Segment, Segmenter

__all__ = [
    "FileFailure",
    "IndexReport",
    "IndexedDocument",
    "Indexer",
    "IngestionBatch",
    "Segment",
    "Segmenter",
    "WorkItem",
    "index_directory",
    "scan",
]
