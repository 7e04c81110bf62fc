"""Shared command options and the CLI layer of configuration overrides."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from syndex.cli.errors import err_config, err_model_load, err_store_unavailable
from syndex.config import ConfigError, SyndexConfig, load_config
from syndex.db.connection import Database
from syndex.db.migrations import initialize
from syndex.db.store import FragmentStore
from syndex.errors import ModelLoadError, StoreUnavailableError
from syndex.service import IndexService

ProjectOpt = Annotated[
    Path,
    typer.Option("--project", "-C", help="Project directory containing syndex.yaml."),
]
DbOpt = Annotated[
    Path | None,
    typer.Option("--db", help="Fragment store path (overrides store.path)."),
]
ModelOpt = Annotated[
    str | None,
    typer.Option("--model", help="Embedding model (overrides embedding.model)."),
]
RootOpt = Annotated[
    list[Path] | None,
    typer.Option("--root", "-r", help="Directory to index (repeatable; overrides watch.roots)."),
]


def load_cli_config(
    console: Console,
    project: Path,
    *,
    db: Path | None = None,
    model: str | None = None,
    roots: list[Path] | None = None,
) -> SyndexConfig:
    """Load config for *project* and apply CLI flag overrides (highest priority).

    Prints an actionable error and exits 1 on an invalid config.
    """
    try:
        cfg = load_config(project.resolve())
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc

    if db is not None:
        cfg.store.path = str(db.resolve())
    if model:
        cfg.embedding.model = model
    if roots:
        cfg.watch.roots = [str(r.resolve()) for r in roots]
    return cfg


def open_service(console: Console, cfg: SyndexConfig) -> IndexService:
    """Open the store and load the model, or print why not and exit 1."""
    service = IndexService(cfg)
    try:
        return service.open()
    except StoreUnavailableError as exc:
        console.print(err_store_unavailable(str(exc)))
        raise typer.Exit(1) from exc
    except ModelLoadError as exc:
        console.print(err_model_load(cfg.embedding.model, str(exc)))
        raise typer.Exit(1) from exc


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open and migrate the store without loading the embedding model."""
    conn = Database(db_path).connect()
    try:
        initialize(conn)
    except StoreUnavailableError:
        conn.close()
        raise
    return conn


def match_document(store: FragmentStore, document: str) -> str | None:
    """Resolve a user-supplied path against the stored document paths."""
    for candidate in (document, str(Path(document).resolve())):
        if store.count(candidate):
            return candidate
    return None
