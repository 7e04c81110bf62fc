"""Tests for syndex init and the top-level app."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from syndex.cli.main import app

runner = CliRunner()


def test_init_creates_config_and_store(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "syndex.yaml").exists()
    assert (tmp_path / ".syndex.db").exists()
    assert "syndex index" in result.output


def test_init_is_idempotent(tmp_path: Path) -> None:
    (tmp_path / "syndex.yaml").write_text("query:\n  top_k: 3\n", encoding="utf-8")
    result = runner.invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "already exists" in result.output
    assert (tmp_path / "syndex.yaml").read_text(encoding="utf-8") == "query:\n  top_k: 3\n"


def test_init_creates_missing_project_dir(tmp_path: Path) -> None:
    target = tmp_path / "new" / "project"
    result = runner.invoke(app, ["init", str(target)])
    assert result.exit_code == 0, result.output
    assert (target / "syndex.yaml").exists()


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("syndex ")


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("syndex ")


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("index", "watch", "search", "status", "tree", "remove", "init"):
        assert command in result.output
