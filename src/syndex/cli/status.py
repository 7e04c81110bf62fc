"""syndex status — store overview and integrity report.

Does not load the embedding model; only the store is opened.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from syndex.cli.errors import err_no_db, err_store_unavailable, warn_integrity
from syndex.cli.options import DbOpt, ProjectOpt, load_cli_config, open_db
from syndex.config import SyndexConfig
from syndex.db.store import FragmentStore
from syndex.errors import StoreUnavailableError

console = Console()


def status_cmd(
    project: ProjectOpt = Path("."),
    db: DbOpt = None,
) -> None:
    """Show indexed documents, fragment counts per kind, and store integrity."""
    cfg = load_cli_config(console, project, db=db)
    store_path = cfg.store_path()

    _show_config_panel(cfg)

    if not store_path.exists():
        console.print(err_no_db(str(store_path)))
        raise typer.Exit(1)

    try:
        conn = open_db(store_path)
    except StoreUnavailableError as exc:
        console.print(err_store_unavailable(str(exc)))
        raise typer.Exit(1) from exc

    try:
        store = FragmentStore(conn, cfg.embedding.dimensions)
        _show_store_panel(store_path, store)
        report = store.check_integrity()
    finally:
        conn.close()

    if report.ok:
        console.print("[green]✓[/] Store integrity OK")
    else:
        console.print(warn_integrity(report))
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_config_panel(cfg: SyndexConfig) -> None:
    roots = cfg.watch_roots()
    lines = [
        f"Model:     [bold]{escape(cfg.embedding.model)}[/] ({cfg.embedding.dimensions} dims)",
        f"Interval:  {cfg.watch.poll_interval:g}s",
        f"Roots:     {len(roots)}",
    ]
    for r in roots:
        marker = "[green]✓[/]" if r.is_dir() else "[yellow]✗ missing[/]"
        lines.append(f"  {escape(str(r))} {marker}")
    console.print(Panel("\n".join(lines), title="[bold]Configuration[/]", expand=False))


def _show_store_panel(store_path: Path, store: FragmentStore) -> None:
    size_mb = store_path.stat().st_size / (1024 * 1024)
    documents = store.list_documents()

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Kind", style="bold")
    table.add_column("Fragments", justify="right")
    for kind, count in store.count_by_kind().items():
        table.add_row(kind, f"{count:,}")

    lines = [
        f"Store:      {escape(str(store_path))} ({size_mb:.1f} MB)",
        f"Documents:  [bold]{len(documents):,}[/]  |  Fragments: [bold]{store.count():,}[/]",
    ]
    if not documents:
        lines.append("[dim]Nothing indexed yet.[/]  Run:  syndex index")
    console.print(Panel("\n".join(lines), title="[bold]Fragment Store[/]", expand=False))
    if documents:
        console.print(table)
