"""Opening the SQLite store: URL parsing, sqlite-vec loading, pragmas."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

from knowledge_engine.errors import ConfigError, StorageError

_SQLITE_SCHEME = "sqlite://"
_PRAGMAS = ("PRAGMA foreign_keys = ON", "PRAGMA journal_mode = WAL")


def parse_database_url(url: str | Path) -> Path:
    """Turn a ``sqlite:///path`` connection string (or a bare path) into a Path.

    Examples:
        "sqlite:///data/kb.db"  -> Path("data/kb.db")
        "sqlite:////tmp/kb.db"  -> Path("/tmp/kb.db")
        ".kengine.db"           -> Path(".kengine.db")
    """
    if isinstance(url, Path):
        return url
    if "://" not in url:
        # sqlx-style "sqlite:kb.db"
        if url.startswith("sqlite:"):
            url = url[len("sqlite:"):]
        return Path(url)
    if not url.startswith(_SQLITE_SCHEME):
        scheme = url.split("://", 1)[0]
        raise ConfigError(
            f"Unsupported database scheme '{scheme}'. Only sqlite:/// URLs are supported."
        )
    rest = url[len(_SQLITE_SCHEME):]
    # sqlite:///relative.db -> "/relative.db"; sqlite:////abs.db -> "//abs.db"
    if rest.startswith("//"):
        return Path(rest[1:])
    path = rest[1:] if rest.startswith("/") else rest
    if not path:
        raise ConfigError(f"Database URL '{url}' does not name a file.")
    return Path(path)


class Database:
    """Handle on one single-file knowledge store.

    Built explicitly from a URL or path and handed to whoever needs a
    connection; nothing is opened at import time.
    """

    def __init__(self, url: Path | str) -> None:
        self.db_path = parse_database_url(url)
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Return a new connection with sqlite-vec loaded and foreign keys enforced.

        The file and its parent directories are created on first use. WAL
        journaling lets readers keep the last committed fragment set while a
        replace is in flight.

        Raises:
            StorageError: The file cannot be created or opened as SQLite.
        """
        conn: sqlite3.Connection | None = None
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            conn.enable_load_extension(True)
            try:
                sqlite_vec.load(conn)
            finally:
                conn.enable_load_extension(False)
            for pragma in _PRAGMAS:
                conn.execute(pragma)
        except (sqlite3.Error, OSError) as exc:
            if conn is not None:
                conn.close()
            raise StorageError(f"Cannot open database '{self.db_path}': {exc}") from exc
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *exc_info: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
