"""Repository for all knowledge store operations.

Single interface for documents, fragments (text + embedding) and the index
metadata that pins the embedding model and dimensionality of the store.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from knowledge_engine.db.models import Document, Fragment, IndexMeta, NewFragment
from knowledge_engine.db.vectors import deserialize_embedding, serialize_embedding
from knowledge_engine.errors import StorageError

_META_MODEL = "embedding_model"
_META_DIMENSIONS = "dimensions"


class Repository:
    """Data access layer for documents and fragments.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. Every multi-row write runs inside one
    transaction; on failure it is rolled back and re-raised as StorageError.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see knowledge_engine.db.migrations.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def get_document(self, document_id: int) -> Document | None:
        row = self._conn.execute(
            "SELECT id, path, content_hash, created_at, updated_at FROM documents WHERE id = ?",
            (document_id,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def get_document_by_path(self, path: str) -> Document | None:
        """Return the document stored for *path*, or None if never indexed.

        Args:
            path: Canonical (absolute) file path.

        Returns:
            Document instance or None.
        """
        row = self._conn.execute(
            "SELECT id, path, content_hash, created_at, updated_at FROM documents WHERE path = ?",
            (path,),
        ).fetchone()
        return _row_to_document(row) if row else None

    def list_documents(self) -> list[Document]:
        """Return all documents ordered by path."""
        rows = self._conn.execute(
            "SELECT id, path, content_hash, created_at, updated_at FROM documents ORDER BY path"
        ).fetchall()
        return [_row_to_document(r) for r in rows]

    def replace_document(
        self,
        path: str,
        content_hash: str,
        fragments: Sequence[NewFragment],
        embedding_model: str | None = None,
    ) -> Document:
        """Upsert *path* and swap its fragment set in one transaction.

        Inserts the document if absent, otherwise updates its hash. All
        existing fragments of the document are deleted and *fragments* are
        inserted. Readers see either the old or the new set, never a mix.
        When *embedding_model* is given and the index has no metadata yet,
        the model and dimensionality are recorded in the same transaction.

        Raises:
            StorageError: On any failure; the prior state is left intact.
        """
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO documents (path, content_hash) VALUES (?, ?)
                    ON CONFLICT(path) DO UPDATE SET
                        content_hash = excluded.content_hash,
                        updated_at = datetime('now')
                    """,
                    (path, content_hash),
                )
                row = self._conn.execute(
                    "SELECT id, path, content_hash, created_at, updated_at"
                    " FROM documents WHERE path = ?",
                    (path,),
                ).fetchone()
                document_id = row["id"]

                # Explicit delete: replacement must not depend on FK cascade.
                self._conn.execute(
                    "DELETE FROM fragments WHERE document_id = ?", (document_id,)
                )
                for fragment in fragments:
                    self._conn.execute(
                        """
                        INSERT INTO fragments (document_id, ordinal, text, embedding, dimensions)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (
                            document_id,
                            fragment.ordinal,
                            fragment.text,
                            serialize_embedding(fragment.embedding),
                            len(fragment.embedding),
                        ),
                    )

                if embedding_model is not None and fragments:
                    self._conn.executemany(
                        "INSERT OR IGNORE INTO index_meta (key, value) VALUES (?, ?)",
                        [
                            (_META_MODEL, embedding_model),
                            (_META_DIMENSIONS, str(len(fragments[0].embedding))),
                        ],
                    )
        except (sqlite3.Error, ValueError) as exc:
            raise StorageError(f"Failed to replace fragments for '{path}': {exc}") from exc

        return _row_to_document(row)

    def delete_document(self, document_id: int) -> int:
        """Delete a document and its fragments. Returns the number of fragments removed."""
        try:
            with self._conn:
                cur = self._conn.execute(
                    "DELETE FROM fragments WHERE document_id = ?", (document_id,)
                )
                removed = cur.rowcount
                self._conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to delete document {document_id}: {exc}") from exc
        return removed

    # ------------------------------------------------------------------
    # Fragments
    # ------------------------------------------------------------------

    def list_fragments(self) -> list[Fragment]:
        """Return every fragment with its decoded embedding, ordered by id.

        This is the full linear scan used by the query engine.
        """
        rows = self._conn.execute(
            """
            SELECT f.id, f.document_id, f.ordinal, f.text, f.embedding, f.dimensions,
                   f.created_at, d.path
            FROM fragments f JOIN documents d ON d.id = f.document_id
            ORDER BY f.id
            """
        ).fetchall()
        return [_row_to_fragment(r) for r in rows]

    def list_fragments_by_document(self, document_id: int) -> list[Fragment]:
        """Return the fragments of one document in ordinal order."""
        rows = self._conn.execute(
            """
            SELECT f.id, f.document_id, f.ordinal, f.text, f.embedding, f.dimensions,
                   f.created_at, d.path
            FROM fragments f JOIN documents d ON d.id = f.document_id
            WHERE f.document_id = ?
            ORDER BY f.ordinal
            """,
            (document_id,),
        ).fetchall()
        return [_row_to_fragment(r) for r in rows]

    def count_fragments(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM fragments").fetchone()[0]

    def count_fragments_by_document(self, document_id: int) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM fragments WHERE document_id = ?", (document_id,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Index metadata
    # ------------------------------------------------------------------

    def get_index_meta(self) -> IndexMeta | None:
        """Return the embedding model + dimensionality pinned for this index."""
        rows = {
            r["key"]: r["value"]
            for r in self._conn.execute("SELECT key, value FROM index_meta").fetchall()
        }
        if _META_MODEL not in rows or _META_DIMENSIONS not in rows:
            return None
        return IndexMeta(
            embedding_model=rows[_META_MODEL],
            dimensions=int(rows[_META_DIMENSIONS]),
        )

    def clear_index_meta_if_empty(self) -> bool:
        """Drop the pinned model when no fragments remain. Returns True if cleared."""
        if self.count_fragments() > 0:
            return False
        with self._conn:
            self._conn.execute("DELETE FROM index_meta")
        return True


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        path=row["path"],
        content_hash=row["content_hash"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_fragment(row: sqlite3.Row) -> Fragment:
    embedding = deserialize_embedding(row["embedding"])
    if len(embedding) != row["dimensions"]:
        raise StorageError(
            f"Fragment {row['id']} embedding has {len(embedding)} values, "
            f"expected {row['dimensions']}."
        )
    return Fragment(
        id=row["id"],
        document_id=row["document_id"],
        ordinal=row["ordinal"],
        text=row["text"],
        embedding=embedding,
        created_at=row["created_at"],
        path=row["path"],
    )
