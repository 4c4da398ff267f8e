"""kengine remove: explicit document removal.

Deletes the document record and all of its fragments in one transaction.
When the last fragment is gone the pinned embedding model is released, so
the next index run may use a different model.

Usage:
  kengine remove documents/handbook.pdf
  kengine remove documents/handbook.pdf --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from knowledge_engine.cli.common import console, load_cli_config
from knowledge_engine.cli.errors import err_document_not_found, err_no_db, err_storage
from knowledge_engine.db.connection import parse_database_url
from knowledge_engine.db.repository import Repository
from knowledge_engine.engine import connect_store
from knowledge_engine.errors import StorageError


def remove_cmd(
    path: Annotated[str, typer.Argument(help="Path of the indexed document to remove.")],
    db: Annotated[
        str | None,
        typer.Option("--db", help="Database path or sqlite:/// URL."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a document and its fragments from the knowledge base."""
    cfg = load_cli_config(db)
    db_path = parse_database_url(cfg.store.url)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    try:
        conn = connect_store(db_path)
    except StorageError as exc:
        console.print(err_storage(str(exc)))
        raise typer.Exit(1)

    try:
        repo = Repository(conn)
        canonical = str(Path(path).resolve())
        document = repo.get_document_by_path(canonical) or repo.get_document_by_path(path)
        if document is None:
            console.print(err_document_not_found(path))
            raise typer.Exit(0)

        count = repo.count_fragments_by_document(document.id)
        console.print(f"\nRemove document: [bold]{escape(document.path)}[/]")
        console.print(f"  Fragments: {count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        try:
            removed = repo.delete_document(document.id)
        except StorageError as exc:
            console.print(err_storage(str(exc)))
            raise typer.Exit(1)
        repo.clear_index_meta_if_empty()

        console.print(f"\n[green]✓[/] Removed: {escape(document.path)}")
        console.print(f"  {removed} fragments deleted")
    finally:
        conn.close()
