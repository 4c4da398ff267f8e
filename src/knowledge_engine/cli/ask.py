"""kengine ask: answer a question from the indexed documents."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from knowledge_engine.cli.common import console, load_cli_config
from knowledge_engine.cli.errors import (
    err_config,
    err_embedding_model_mismatch,
    err_empty_index,
    err_no_api_key,
    err_query,
    err_storage,
)
from knowledge_engine.engine import KnowledgeEngine
from knowledge_engine.errors import (
    ConfigError,
    EmbeddingError,
    EmptyIndexError,
    QueryError,
    QueryModelMismatchError,
    StorageError,
)
from knowledge_engine.rag.llm_client import validate_api_key
from knowledge_engine.rag.query import Answer


def ask_cmd(
    question: Annotated[str, typer.Argument(help="The question to ask.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Number of fragments used as context."),
    ] = None,
    db: Annotated[
        str | None,
        typer.Option("--db", help="Database path or sqlite:/// URL."),
    ] = None,
    show_sources: Annotated[
        bool,
        typer.Option("--show-sources", help="List the retrieved fragments and their scores."),
    ] = False,
) -> None:
    """Ask a question against the knowledge base."""
    cfg = load_cli_config(db)

    try:
        validate_api_key(cfg.embedding.model)
        validate_api_key(cfg.generation.model)
    except ConfigError as exc:
        console.print(err_no_api_key(str(exc)))
        raise typer.Exit(1)

    try:
        with KnowledgeEngine.open(cfg) as engine:
            answer = asyncio.run(engine.ask(question, top_k=top_k))
    except EmptyIndexError:
        console.print(err_empty_index())
        raise typer.Exit(1)
    except QueryModelMismatchError as exc:
        console.print(err_embedding_model_mismatch(exc.index_model, exc.query_model))
        raise typer.Exit(1)
    except QueryError as exc:
        console.print(err_query(exc.stage, str(exc)))
        raise typer.Exit(1)
    except EmbeddingError as exc:
        console.print(err_query("embedding", str(exc)))
        raise typer.Exit(1)
    except StorageError as exc:
        console.print(err_storage(str(exc)))
        raise typer.Exit(1)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)

    console.print(Panel(escape(answer.text), title="[bold cyan]Answer[/]", expand=False))
    if show_sources:
        _print_sources(answer)


def _print_sources(answer: Answer) -> None:
    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("#", justify="right", style="bold")
    table.add_column("Similarity", justify="right")
    table.add_column("Fragment", justify="right", style="dim")
    table.add_column("Source")
    for s in answer.sources:
        table.add_row(
            str(s.rank),
            f"{s.similarity:.3f}",
            str(s.fragment.id),
            escape(s.fragment.path),
        )
    console.print(table)
