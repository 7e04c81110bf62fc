"""syndex remove — drop a document and all its fragments from the store.

Usage:
  syndex remove --document apis/orders.xml
  syndex remove --document apis/orders.xml --yes

A document that still exists under a watch root is re-indexed by the next
``syndex index`` or watch cycle.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from syndex.cli.errors import err_document_not_found, err_no_db
from syndex.cli.options import DbOpt, ProjectOpt, load_cli_config, match_document, open_db
from syndex.db.store import FragmentStore

console = Console()


def remove_cmd(
    document: Annotated[
        str,
        typer.Option("--document", "-d", help="Document path to remove."),
    ],
    project: ProjectOpt = Path("."),
    db: DbOpt = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a document and all its fragments from the store."""
    cfg = load_cli_config(console, project, db=db)
    store_path = cfg.store_path()
    if not store_path.exists():
        console.print(err_no_db(str(store_path)))
        raise typer.Exit(1)

    conn = open_db(store_path)
    try:
        store = FragmentStore(conn, cfg.embedding.dimensions)
        path = match_document(store, document)
        if path is None:
            console.print(err_document_not_found(document))
            raise typer.Exit(0)

        count = store.count(path)
        console.print(f"\nRemove document: [bold]{escape(path)}[/]")
        console.print(f"  Fragments: {count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        removed = store.delete_by_document(path)
        console.print(f"\n[green]✓[/] Removed: {escape(path)}")
        console.print(f"  {removed} fragments deleted")
    finally:
        conn.close()
