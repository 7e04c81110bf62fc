"""syndex index — one bootstrap pass over the watched directories.

Every document whose content fingerprint is new is chunked and reconciled
against the store; documents that disappeared since the last run are
pruned. Unchanged fragments are never re-embedded.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from syndex.cli.errors import err_no_roots
from syndex.cli.options import DbOpt, ModelOpt, ProjectOpt, RootOpt, load_cli_config, open_service
from syndex.service import CycleSummary, Scheduler

console = Console()


def index_cmd(
    root: RootOpt = None,
    project: ProjectOpt = Path("."),
    db: DbOpt = None,
    model: ModelOpt = None,
) -> None:
    """Index every changed XML artifact under the watch roots."""
    cfg = load_cli_config(console, project, db=db, model=model, roots=root)
    roots = cfg.watch_roots()
    if not roots:
        console.print(err_no_roots())
        raise typer.Exit(1)

    with open_service(console, cfg) as service:
        summary = Scheduler(service, roots, cfg.watch.poll_interval).bootstrap()
        total = service.store.count()

    print_summary(summary)
    console.print(f"  Store: [bold]{total:,}[/] fragments")
    if summary.errors:
        raise typer.Exit(1)


def print_summary(summary: CycleSummary) -> None:
    inserted = sum(r.inserted for r in summary.results)
    updated = sum(r.updated + r.metadata_updated for r in summary.results)
    deleted = sum(r.deleted for r in summary.results) + summary.fragments_removed
    unchanged = sum(r.unchanged for r in summary.results)
    unparsable = [r.path for r in summary.results if r.parse_failed]

    console.print(
        f"[green]✓[/] Reconciled [bold]{len(summary.results)}[/] documents, "
        f"removed [bold]{len(summary.removed)}[/]"
    )
    console.print(
        f"  Fragments: {inserted} inserted, {updated} updated, "
        f"{deleted} deleted, {unchanged} unchanged"
    )
    console.print(f"  Embedding calls: {summary.embed_calls}")
    if summary.failed:
        console.print(f"  [yellow]⚠[/] {summary.failed} fragments skipped; retried on the next pass")
    if unparsable:
        console.print(f"  [yellow]⚠[/] {len(unparsable)} documents could not be parsed (kept as-is)")
    for path in summary.errors:
        console.print(f"  [red]✗[/] {escape(path)}: store error (see log)")
