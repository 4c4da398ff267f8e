"""Helpers shared by the CLI commands."""

from __future__ import annotations

import typer
from rich.console import Console

from knowledge_engine.cli.errors import err_config
from knowledge_engine.config import KnowledgeConfig, load_config, validate_config
from knowledge_engine.db.connection import parse_database_url
from knowledge_engine.errors import ConfigError

console = Console()


def load_cli_config(db: str | None = None) -> KnowledgeConfig:
    """Load config and apply the ``--db`` flag; exit 1 on ConfigError."""
    try:
        cfg = load_config()
        if db:
            cfg.store.url = db
        validate_config(cfg)
        parse_database_url(cfg.store.url)
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    return cfg
