"""kengine index: bring the knowledge base in line with a document directory.

Only new or changed files (by SHA-256 of their bytes) are segmented and
embedded. Files that fail are listed in the summary; the run still exits 0.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from knowledge_engine.cli.common import console, load_cli_config
from knowledge_engine.cli.errors import (
    err_config,
    err_embedding_model_mismatch,
    err_ingestion,
    err_no_api_key,
    err_storage,
)
from knowledge_engine.engine import KnowledgeEngine
from knowledge_engine.errors import (
    ConfigError,
    EmbeddingModelMismatch,
    IngestionError,
    StorageError,
)
from knowledge_engine.ingest.pipeline import IndexReport
from knowledge_engine.rag.llm_client import validate_api_key

_DEFAULT_ROOT = Path("./documents")


def index_cmd(
    root: Annotated[
        Path,
        typer.Argument(help="Directory containing the documents to index."),
    ] = _DEFAULT_ROOT,
    db: Annotated[
        str | None,
        typer.Option("--db", help="Database path or sqlite:/// URL (created if missing)."),
    ] = None,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", min=1, help="Maximum concurrent embedding requests."),
    ] = None,
) -> None:
    """Index new and changed documents under ROOT."""
    cfg = load_cli_config(db)
    if concurrency is not None:
        cfg.embedding.concurrency = concurrency

    try:
        validate_api_key(cfg.embedding.model)
    except ConfigError as exc:
        console.print(err_no_api_key(str(exc)))
        raise typer.Exit(1)

    try:
        with KnowledgeEngine.open(cfg) as engine:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
                console=console,
            ) as prog:
                prog.add_task(f"Indexing {root}…", total=None)
                report = asyncio.run(engine.index(root))
    except EmbeddingModelMismatch as exc:
        console.print(err_embedding_model_mismatch(exc.index_model, exc.config_model))
        raise typer.Exit(1)
    except IngestionError as exc:
        console.print(err_ingestion(str(exc)))
        raise typer.Exit(1)
    except StorageError as exc:
        console.print(err_storage(str(exc)))
        raise typer.Exit(1)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    _print_report(report)


def _print_report(report: IndexReport) -> None:
    table = Table(title="Index summary", show_header=True)
    table.add_column("Processed", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="dim")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Fragments written", justify="right")
    table.add_row(
        str(report.processed_count),
        str(report.skipped_count),
        str(report.failed_count),
        str(report.fragments),
    )
    console.print(table)

    if report.failed:
        console.print("[red]Failed documents:[/]")
        for failure in report.failed:
            console.print(f"  [red]✗[/] {escape(failure.path)}: {escape(failure.reason)}")
    if not report.processed and not report.failed:
        console.print("[green]✓[/] No new or updated documents to process.")
