"""Rich error messages: actionable feedback for the kengine CLI.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from knowledge_engine.cli.errors import err_no_db
    console.print(err_no_db(".kengine.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape


def err_config(message: str) -> str:
    """Configuration could not be loaded or is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(message)}\n"
        "  Fix kengine.yaml / ~/.kengine/config.yaml or the KENGINE_* environment variables."
    )


def err_no_api_key(message: str) -> str:
    """No API key for the configured model provider."""
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  API keys are read from the environment only, never from kengine.yaml."
    )


def err_no_db(db_path: str) -> str:
    """No database at the configured location."""
    return (
        f"[red]Error:[/] No database found at '{escape(db_path)}'.\n"
        "  Run:  kengine index <DIRECTORY>"
    )


def err_storage(message: str) -> str:
    """The store could not be opened or written."""
    return (
        f"[red]Error:[/] Storage failure.\n"
        f"  {escape(message)}\n"
        "  Check the database path (--db / KENGINE_DATABASE_URL) and file permissions."
    )


def err_embedding_model_mismatch(db_model: str, config_model: str) -> str:
    """Embedding model stored in the index does not match current config."""
    return (
        f"[red]Error:[/] Embedding model mismatch.\n"
        f"  Index uses:  {escape(db_model)}\n"
        f"  Config has:  {escape(config_model)}\n"
        "  Use the index's model, or point --db at a fresh database and re-index."
    )


def err_ingestion(message: str) -> str:
    """The document root cannot be scanned."""
    return f"[red]Error:[/] {escape(message)}\n  Pass an existing directory:  kengine index <DIRECTORY>"


def err_empty_index() -> str:
    """Nothing indexed yet."""
    return (
        "[yellow]Empty index:[/] no fragments have been indexed yet.\n"
        "  Run:  kengine index <DIRECTORY>"
    )


def err_query(stage: str, message: str) -> str:
    """A question failed at *stage* (embedding, retrieval, generation)."""
    return f"[red]Error ({escape(stage)}):[/] {escape(message)}"


def err_document_not_found(path: str) -> str:
    """Document not in the index."""
    return (
        f"[yellow]Document not found:[/] '{escape(path)}' is not in the index.\n"
        "  Run:  kengine status  to see all indexed documents."
    )
