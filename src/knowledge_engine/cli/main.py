"""kengine: retrieval-augmented knowledge engine.

  kengine index   Ingest new and changed documents into the local index.
  kengine ask     Answer a question from the indexed documents.
  kengine status  Show what the index holds.
  kengine remove  Drop one document from the index.
"""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from knowledge_engine.cli.ask import ask_cmd
from knowledge_engine.cli.index import index_cmd
from knowledge_engine.cli.remove import remove_cmd
from knowledge_engine.cli.status import status_cmd
from knowledge_engine.logging_setup import configure_logging

app = typer.Typer(name="kengine", help=__doc__, no_args_is_help=True, add_completion=False)

for _name, _command in (
    ("index", index_cmd),
    ("ask", ask_cmd),
    ("status", status_cmd),
    ("remove", remove_cmd),
):
    app.command(_name)(_command)


def _version_line() -> str:
    try:
        installed = importlib.metadata.version("kengine")
    except importlib.metadata.PackageNotFoundError:
        installed = "dev"
    return f"kengine {installed}"


def _show_version(requested: bool) -> None:
    if requested:
        typer.echo(_version_line())
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug output to stderr.")
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version", callback=_show_version, is_eager=True, help="Print the version and exit."
        ),
    ] = None,
) -> None:
    configure_logging(verbose=verbose)


@app.command("version")
def version_cmd() -> None:
    """Print the installed kengine version."""
    typer.echo(_version_line())


if __name__ == "__main__":
    app()
