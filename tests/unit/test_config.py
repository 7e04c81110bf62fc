"""Tests for the syndex config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from syndex.config import (
    PROJECT_CONFIG_NAME,
    ConfigError,
    SyndexConfig,
    ensure_project_config,
    load_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("SYNDEX_EMBEDDING_MODEL", "SYNDEX_DB", "SYNDEX_POLL_INTERVAL"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def no_global(tmp_path: Path) -> Path:
    return tmp_path / "nonexistent" / "config.yaml"


# ---------------------------------------------------------------------------
# Defaults — no config files present
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path, no_global: Path) -> None:
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)

    assert cfg.watch.roots == []
    assert cfg.watch.pattern == "*.xml"
    assert cfg.watch.poll_interval == 10.0
    assert cfg.store.path == ".syndex.db"
    assert cfg.embedding.model == "ollama/all-minilm"
    assert cfg.embedding.dimensions == 384
    assert cfg.query.top_k == 5
    assert cfg.chunker.token_budget == 150
    assert cfg.project_dir == tmp_path


def test_relative_paths_resolve_against_project_dir(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(
        tmp_path / PROJECT_CONFIG_NAME,
        {"watch": {"roots": ["artifacts", "/abs/dir"]}, "store": {"path": "state/index.db"}},
    )
    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert cfg.watch_roots() == [tmp_path / "artifacts", Path("/abs/dir")]
    assert cfg.store_path() == tmp_path / "state" / "index.db"


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "openai/text-embedding-3-small", "dimensions": 1536}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.dimensions == 1536
    assert cfg.query.top_k == 5


def test_project_overrides_global_per_key(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "ollama/nomic-embed-text", "dimensions": 768}})
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, {"embedding": {"model": "dummy-sha256"}})

    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.embedding.model == "dummy-sha256"
    assert cfg.embedding.dimensions == 768


def test_empty_files_give_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")
    (tmp_path / PROJECT_CONFIG_NAME).write_text("", encoding="utf-8")
    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.store.path == ".syndex.db"


def test_env_overrides_files(tmp_path: Path, no_global: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, {"watch": {"poll_interval": 30}})
    monkeypatch.setenv("SYNDEX_EMBEDDING_MODEL", "dummy-sha256")
    monkeypatch.setenv("SYNDEX_DB", "/tmp/other.db")
    monkeypatch.setenv("SYNDEX_POLL_INTERVAL", "2.5")

    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert cfg.embedding.model == "dummy-sha256"
    assert cfg.store_path() == Path("/tmp/other.db")
    assert cfg.watch.poll_interval == 2.5


def test_env_poll_interval_not_a_number(tmp_path: Path, no_global: Path, monkeypatch) -> None:
    monkeypatch.setenv("SYNDEX_POLL_INTERVAL", "soon")
    with pytest.raises(ConfigError, match="SYNDEX_POLL_INTERVAL"):
        load_config(project_dir=tmp_path, global_config_path=no_global)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_global_config_rejects_api_keys(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "openai/x", "api_key": "sk-secret"}})
    with pytest.raises(ConfigError, match="forbidden key 'embedding.api_key'"):
        load_config(project_dir=tmp_path, global_config_path=global_cfg)


def test_token_settings_are_not_mistaken_for_credentials(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"chunker": {"token_budget": 100, "max_token_length": 40}})
    cfg = load_config(project_dir=tmp_path, global_config_path=global_cfg)
    assert cfg.chunker.token_budget == 100


@pytest.mark.parametrize("data", [
    {"watch": {"poll_interval": 0}},
    {"embedding": {"dimensions": 0}},
    {"query": {"top_k": 0}},
    {"chunker": {"min_token_length": 10, "max_token_length": 5}},
    {"watch": {"roots": "artifacts"}},
    {"query": {"top_k": "many"}},
])
def test_invalid_values_raise(tmp_path: Path, no_global: Path, data: dict) -> None:
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, data)
    with pytest.raises(ConfigError):
        load_config(project_dir=tmp_path, global_config_path=no_global)


def test_unknown_section_warns(tmp_path: Path, no_global: Path) -> None:
    _write_yaml(tmp_path / PROJECT_CONFIG_NAME, {"retrieval": {"top_k": 3}})
    with warnings.catch_warnings(record=True) as w:
        warnings.simplefilter("always")
        load_config(project_dir=tmp_path, global_config_path=no_global)
    assert any("retrieval" in str(warning.message) for warning in w)


# ---------------------------------------------------------------------------
# ensure_project_config
# ---------------------------------------------------------------------------


def test_ensure_project_config_writes_loadable_template(tmp_path: Path, no_global: Path) -> None:
    path, created = ensure_project_config(tmp_path)
    assert created
    assert path == tmp_path / PROJECT_CONFIG_NAME

    cfg = load_config(project_dir=tmp_path, global_config_path=no_global)
    assert isinstance(cfg, SyndexConfig)
    assert cfg.watch.roots == ["src/main/wso2mi/artifacts"]


def test_ensure_project_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / PROJECT_CONFIG_NAME
    target.write_text("query:\n  top_k: 9\n", encoding="utf-8")
    _, created = ensure_project_config(tmp_path)
    assert not created
    assert target.read_text(encoding="utf-8") == "query:\n  top_k: 9\n"
