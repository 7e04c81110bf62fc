"""syndex watch — bootstrap, then poll the watched directories until stopped.

SIGINT / SIGTERM are honoured at poll-cycle boundaries only; the cycle in
flight finishes and the store is closed cleanly.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape

from syndex.cli.errors import err_no_roots
from syndex.cli.options import DbOpt, ModelOpt, ProjectOpt, RootOpt, load_cli_config, open_service
from syndex.service import Scheduler, install_stop_handlers

console = Console()


def watch_cmd(
    root: RootOpt = None,
    project: ProjectOpt = Path("."),
    db: DbOpt = None,
    model: ModelOpt = None,
    interval: Annotated[
        float | None,
        typer.Option("--interval", "-i", min=0.1, help="Seconds between polls (overrides watch.poll_interval)."),
    ] = None,
) -> None:
    """Keep the index in sync with the watch roots until interrupted."""
    cfg = load_cli_config(console, project, db=db, model=model, roots=root)
    if interval is not None:
        cfg.watch.poll_interval = interval
    roots = cfg.watch_roots()
    if not roots:
        console.print(err_no_roots())
        raise typer.Exit(1)

    stop = threading.Event()
    install_stop_handlers(stop)

    with open_service(console, cfg) as service:
        console.print(
            f"Watching {len(roots)} directories every {cfg.watch.poll_interval:g}s "
            f"[dim](Ctrl+C to stop)[/]"
        )
        for r in roots:
            console.print(f"  [dim]{escape(str(r))}[/]")
        Scheduler(service, roots, cfg.watch.poll_interval).run(stop)

    console.print("[green]✓[/] Stopped.")
