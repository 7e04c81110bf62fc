"""syndex CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from syndex.cli.index import index_cmd
from syndex.cli.init import init_cmd
from syndex.cli.remove import remove_cmd
from syndex.cli.search import search_cmd
from syndex.cli.status import status_cmd
from syndex.cli.tree import tree_cmd
from syndex.cli.watch import watch_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("syndex")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"syndex {_installed_version()}")
        raise typer.Exit()


def configure_logging(verbose: int) -> None:
    """Route library logs through rich: WARNING by default, -v INFO, -vv DEBUG."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # LiteLLM and its HTTP stack are chatty at INFO.
    for noisy in ("LiteLLM", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))


app = typer.Typer(
    name="syndex",
    help=(
        "syndex — incremental semantic index for integration artifacts.\n\n"
        "  syndex index   One pass: chunk, embed and store every changed document.\n"
        "  syndex watch   Keep the index in sync by polling the watched directories.\n"
        "  syndex search  Rank indexed fragments against a free-text query."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="More log output (-vv for debug)."),
    ] = 0,
) -> None:
    """syndex — incremental semantic index for integration artifacts."""
    configure_logging(verbose)


app.command("init")(init_cmd)
app.command("index")(index_cmd)
app.command("watch")(watch_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("tree")(tree_cmd)
app.command("remove")(remove_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed syndex version."""
    typer.echo(f"syndex {_installed_version()}")


if __name__ == "__main__":
    app()
