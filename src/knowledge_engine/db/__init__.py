"""Knowledge store: SQLite connection, schema, repository, vector helpers."""

from knowledge_engine.db.connection import Database, parse_database_url
from knowledge_engine.db.migrations import MIGRATIONS, initialize, run_migrations
from knowledge_engine.db.repository import Repository
from knowledge_engine.db.vectors import (
    cosine_similarity,
    deserialize_embedding,
    serialize_embedding,
)

__all__ = [
    "Database",
    "parse_database_url",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "cosine_similarity",
    "serialize_embedding",
    "deserialize_embedding",
]
