"""Forward-only schema migrations for the knowledge store.

Each migration is a list of single SQL statements applied inside one
transaction together with its ``schema_version`` row, so a database is always
at exactly one recorded version.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import NamedTuple

logger = logging.getLogger(__name__)


class Migration(NamedTuple):
    version: int
    statements: tuple[str, ...]


_SCHEMA_VERSION_TABLE = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER PRIMARY KEY,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# Append only; never edit a migration that has shipped.
MIGRATIONS: list[Migration] = [
    Migration(
        1,
        (
            """
            CREATE TABLE documents (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                path            TEXT NOT NULL UNIQUE,
                content_hash    TEXT NOT NULL,
                created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
                updated_at      DATETIME NOT NULL DEFAULT (datetime('now'))
            )
            """,
            # AUTOINCREMENT: ids of replaced fragments are never handed out again.
            """
            CREATE TABLE fragments (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                document_id     INTEGER NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
                ordinal         INTEGER NOT NULL CHECK (ordinal >= 0),
                text            TEXT NOT NULL,
                embedding       BLOB NOT NULL,
                dimensions      INTEGER NOT NULL CHECK (dimensions > 0),
                created_at      DATETIME NOT NULL DEFAULT (datetime('now')),
                UNIQUE (document_id, ordinal)
            )
            """,
            "CREATE INDEX idx_fragments_document ON fragments(document_id)",
            """
            CREATE TABLE index_meta (
                key     TEXT PRIMARY KEY,
                value   TEXT NOT NULL
            )
            """,
        ),
    ),
]

CURRENT_VERSION = MIGRATIONS[-1].version


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration, 0 for a fresh database."""
    (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return version


def run_migrations(conn: sqlite3.Connection) -> None:
    """Bring *conn* up to CURRENT_VERSION. Safe to call repeatedly."""
    with conn:
        conn.execute(_SCHEMA_VERSION_TABLE)
    applied = current_version(conn)
    for migration in MIGRATIONS:
        if migration.version <= applied:
            continue
        with conn:
            conn.execute("BEGIN")
            for statement in migration.statements:
                conn.execute(statement)
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (migration.version,))
        logger.debug("Applied schema migration %d", migration.version)


def initialize(conn: sqlite3.Connection) -> None:
    """Create or upgrade the schema on a freshly opened connection."""
    run_migrations(conn)
