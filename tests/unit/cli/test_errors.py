"""Tests for syndex rich error messages."""

from __future__ import annotations

from syndex.cli.errors import (
    err_config,
    err_document_not_found,
    err_model_load,
    err_no_db,
    err_no_roots,
    err_service_not_ready,
    warn_integrity,
)
from syndex.db.store import IntegrityReport


def test_every_error_names_a_remedy() -> None:
    messages = [
        err_config("query.top_k must be >= 1"),
        err_no_db(".syndex.db"),
        err_model_load("ollama/all-minilm", "connection refused"),
        err_service_not_ready("model call failed"),
        err_no_roots(),
    ]
    for msg in messages:
        assert msg.startswith("[red]Error:[/]")
        assert "\n  " in msg


def test_err_no_db_points_to_index() -> None:
    assert "syndex index" in err_no_db("x.db")


def test_err_model_load_suggests_offline_model() -> None:
    assert "dummy-sha256" in err_model_load("openai/x", "no key")


def test_user_text_is_escaped() -> None:
    msg = err_document_not_found("[bold]weird[/].xml")
    assert "\\[bold]" in msg


def test_warn_integrity_lists_only_problems() -> None:
    msg = warn_integrity(IntegrityReport(dangling_parents=list(range(1, 13))))
    assert "dangling parent references" in msg
    assert "(+2 more)" in msg
    assert "wrong vector dimensions" not in msg
