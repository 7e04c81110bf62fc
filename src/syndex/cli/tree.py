"""syndex tree — print the stored fragment hierarchy per document."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from syndex.cli.errors import err_document_not_found, err_no_db
from syndex.cli.options import DbOpt, ProjectOpt, load_cli_config, match_document, open_db
from syndex.db.models import Fragment
from syndex.db.store import FragmentStore

console = Console()


def tree_cmd(
    document: Annotated[
        str | None,
        typer.Option("--document", "-d", help="Only show this document."),
    ] = None,
    project: ProjectOpt = Path("."),
    db: DbOpt = None,
) -> None:
    """Show containers, flows and mediators as a tree."""
    cfg = load_cli_config(console, project, db=db)
    store_path = cfg.store_path()
    if not store_path.exists():
        console.print(err_no_db(str(store_path)))
        raise typer.Exit(1)

    conn = open_db(store_path)
    try:
        store = FragmentStore(conn, cfg.embedding.dimensions)
        path = match_document(store, document) if document else None
        if document and path is None:
            console.print(err_document_not_found(document))
            raise typer.Exit(0)
        ordered = store.hierarchy(path)
    finally:
        conn.close()

    if not ordered:
        console.print("[dim]Nothing indexed yet.[/]")
        return

    trees: dict[str, Tree] = {}
    stack: list[Tree] = []
    for depth, fragment in ordered:
        if depth == 0:
            doc_tree = trees.get(fragment.document_path)
            if doc_tree is None:
                doc_tree = trees[fragment.document_path] = Tree(
                    f"[bold]{escape(fragment.document_path)}[/]"
                )
            stack = [doc_tree]
        del stack[depth + 1 :]
        stack.append(stack[depth].add(_label(fragment, depth)))

    for doc_tree in trees.values():
        console.print(doc_tree)


def _label(fragment: Fragment, depth: int) -> str:
    label = f"[cyan]{escape(fragment.fragment_kind)}[/]"
    if depth == 0:
        label += f" [bold]{escape(fragment.container_name)}[/] ({escape(fragment.container_kind)})"
    return label + f" [dim]{fragment.span} #{fragment.id}[/]"
