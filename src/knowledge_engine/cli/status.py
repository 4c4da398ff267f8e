"""kengine status: overview of the knowledge base."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from knowledge_engine.cli.common import console, load_cli_config
from knowledge_engine.cli.errors import err_no_db, err_storage
from knowledge_engine.db.connection import parse_database_url
from knowledge_engine.db.models import Document
from knowledge_engine.db.repository import Repository
from knowledge_engine.engine import connect_store
from knowledge_engine.errors import StorageError


def status_cmd(
    db: Annotated[
        str | None,
        typer.Option("--db", help="Database path or sqlite:/// URL."),
    ] = None,
    list_documents: Annotated[
        bool,
        typer.Option("--list", "-l", help="List every indexed document."),
    ] = False,
) -> None:
    """Show documents, fragments and the embedding model of the index."""
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
        documents = repo.list_documents()
        meta = repo.get_index_meta()

        size_mb = db_path.stat().st_size / (1024 * 1024)
        lines = [
            f"Database:   {escape(str(db_path))} ({size_mb:.1f} MB)",
            f"Documents:  [bold]{len(documents)}[/]  |  "
            f"Fragments: [bold]{repo.count_fragments():,}[/]",
        ]
        if meta is not None:
            lines.append(
                f"Embedding:  {escape(meta.embedding_model)} ({meta.dimensions} dims)"
            )
        last = _last_update(documents)
        lines.append(f"Last index: [dim]{last}[/]" if last else "[dim]No documents indexed yet.[/]")
        console.print(Panel("\n".join(lines), title="[bold]Knowledge Base[/]", expand=False))

        if list_documents and documents:
            table = Table(show_header=True, box=None, padding=(0, 1))
            table.add_column("ID", justify="right", style="dim")
            table.add_column("Fragments", justify="right")
            table.add_column("Updated", style="dim")
            table.add_column("Path")
            for d in documents:
                table.add_row(
                    str(d.id),
                    str(repo.count_fragments_by_document(d.id)),
                    (d.updated_at or "")[:16],
                    escape(d.path),
                )
            console.print(table)
    finally:
        conn.close()


def _last_update(documents: list[Document]) -> str | None:
    """Return the most recent updated_at across *documents* as 'YYYY-MM-DD HH:MM'."""
    dates = [d.updated_at for d in documents if d.updated_at]
    if not dates:
        return None
    return max(dates)[:16]
