"""syndex search — rank indexed fragments against a free-text query.

Exit codes:
  0  success, including "no results"
  1  config invalid, store missing/unavailable, or model not loadable
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from syndex.cli.errors import err_no_db, err_service_not_ready
from syndex.cli.options import DbOpt, ModelOpt, ProjectOpt, load_cli_config, open_service
from syndex.errors import EmbeddingError
from syndex.rag.query import SearchResult

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="Free-text query.")],
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Number of results (overrides query.top_k)."),
    ] = None,
    project: ProjectOpt = Path("."),
    db: DbOpt = None,
    model: ModelOpt = None,
) -> None:
    """Search the index and print the best-matching fragments."""
    cfg = load_cli_config(console, project, db=db, model=model)
    store_path = cfg.store_path()
    if not store_path.exists():
        console.print(err_no_db(str(store_path)))
        raise typer.Exit(1)

    k = top_k if top_k is not None else cfg.query.top_k
    with open_service(console, cfg) as service:
        try:
            results = service.query_engine.search(query, top_k=k)
        except EmbeddingError as exc:
            console.print(err_service_not_ready(str(exc)))
            raise typer.Exit(1) from exc

    if not results:
        console.print("[dim]No results found.[/]")
        return

    for rank, result in enumerate(results, start=1):
        _print_result(rank, result)


def _print_result(rank: int, r: SearchResult) -> None:
    console.print(
        f"[bold]{rank:>2}.[/] [cyan]{r.similarity:.4f}[/]  "
        f"{escape(r.container_kind)}/{escape(r.fragment_kind)}  [bold]{escape(r.name)}[/]"
    )
    location = f"    {escape(r.document_path)}:{r.start_line}-{r.end_line}"
    if r.parent_id is not None:
        location += f"  [dim]parent #{r.parent_id}[/]"
    console.print(location, soft_wrap=True)
