"""Retrieval + answer synthesis."""

from knowledge_engine.rag.llm_client import Embedder, Generator, validate_api_key
from knowledge_engine.rag.query import Answer, QueryEngine
from knowledge_engine.rag.retriever import ScoredFragment, rank_fragments

__all__ = [
    "Answer",
    "Embedder",
    "Generator",
    "QueryEngine",
    "ScoredFragment",
    "rank_fragments",
    "validate_api_key",
]
