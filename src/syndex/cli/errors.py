"""syndex rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from syndex.cli.errors import err_no_db
    console.print(err_no_db(".syndex.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from syndex.db.store import IntegrityReport


def err_config(reason: str) -> str:
    """syndex.yaml (or the global config) is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration: {escape(reason)}\n"
        "  Fix syndex.yaml, or run:  syndex init  to write a fresh one."
    )


def err_no_db(db_path: str = ".syndex.db") -> str:
    """No fragment store at the configured location."""
    return (
        f"[red]Error:[/] No fragment store found at '{escape(db_path)}'.\n"
        "  Run:  syndex index"
    )


def err_store_unavailable(reason: str) -> str:
    """The store file cannot be opened or initialised."""
    return (
        f"[red]Error:[/] {escape(reason)}\n"
        "  Check that the store path is writable, or set store.path in syndex.yaml."
    )


def err_model_load(model: str, reason: str) -> str:
    """The embedding model could not be loaded (key, server, or dimension)."""
    return (
        f"[red]Error:[/] Embedding model '{escape(model)}' could not be loaded.\n"
        f"  {escape(reason)}\n"
        "  Check embedding.model / embedding.dimensions in syndex.yaml,\n"
        "  or use the offline model:  export SYNDEX_EMBEDDING_MODEL=dummy-sha256"
    )


def err_service_not_ready(reason: str) -> str:
    """The query engine cannot answer (distinct from an empty result set)."""
    return (
        f"[red]Error:[/] Service not ready: {escape(reason)}\n"
        "  Run:  syndex status  to inspect the store."
    )


def err_no_roots() -> str:
    """No watch roots configured and none passed on the command line."""
    return (
        "[red]Error:[/] No directories to index.\n"
        "  Add watch.roots to syndex.yaml, or pass:  --root <dir>"
    )


def err_document_not_found(path: str) -> str:
    """Document has no fragments in the store."""
    return (
        f"[yellow]Document not found:[/] '{escape(path)}' has no indexed fragments.\n"
        "  Run:  syndex status  to see indexed documents."
    )


def warn_integrity(report: IntegrityReport) -> str:
    """Store integrity problems — surfaced, never repaired automatically."""
    lines = ["[red]✗[/] Store integrity problems detected:"]
    if report.dangling_parents:
        lines.append(f"    dangling parent references: {_ids(report.dangling_parents)}")
    if report.cross_document_parents:
        lines.append(f"    cross-document parents:     {_ids(report.cross_document_parents)}")
    if report.wrong_dimensions:
        lines.append(f"    wrong vector dimensions:    {_ids(report.wrong_dimensions)}")
    lines.append("  Rebuild the store:  delete it and run  syndex index")
    return "\n".join(lines)


def _ids(ids: list[int], limit: int = 10) -> str:
    shown = ", ".join(str(i) for i in ids[:limit])
    return shown + (f" (+{len(ids) - limit} more)" if len(ids) > limit else "")
