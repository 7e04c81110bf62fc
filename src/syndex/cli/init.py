"""syndex init — write syndex.yaml and create an empty fragment store.

Creates (in the project directory):
  syndex.yaml   — watch roots, store path, embedding model (no API keys)
  .syndex.db    — empty fragment store with schema
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from syndex.cli.errors import err_store_unavailable
from syndex.cli.options import load_cli_config
from syndex.config import ensure_project_config
from syndex.db.connection import Database
from syndex.db.migrations import initialize
from syndex.errors import StoreUnavailableError

console = Console()


def init_cmd(
    project_dir: Annotated[
        Path,
        typer.Argument(help="Directory to initialize. Defaults to current directory."),
    ] = Path("."),
) -> None:
    """Initialize a syndex project: config file plus empty store."""
    project_dir = project_dir.resolve()

    config_path, created = ensure_project_config(project_dir)
    if created:
        console.print(f"  [green]✓[/] {escape(str(config_path))}", soft_wrap=True)
    else:
        console.print(
            f"  [dim]-[/] {escape(str(config_path))} already exists, left untouched",
            soft_wrap=True,
        )

    cfg = load_cli_config(console, project_dir)
    store_path = cfg.store_path()
    try:
        with Database(store_path) as conn:
            initialize(conn)
    except StoreUnavailableError as exc:
        console.print(err_store_unavailable(str(exc)))
        raise typer.Exit(1) from exc
    console.print(f"  [green]✓[/] {escape(str(store_path))}", soft_wrap=True)

    console.print(
        "\n[bold]Next:[/]\n"
        "  1. Set watch.roots in syndex.yaml to your artifact directories\n"
        "  2. Run:  syndex index"
    )
