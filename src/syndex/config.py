"""syndex configuration loader.

Priority (high → low):
  1. CLI flags              (handled at call site — not in this module)
  2. Environment variables  (SYNDEX_EMBEDDING_MODEL, SYNDEX_DB, SYNDEX_POLL_INTERVAL)
  3. Per-project syndex.yaml
  4. Global ~/.syndex/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
Relative watch roots and store paths resolve against the project directory.
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".syndex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
PROJECT_CONFIG_NAME: str = "syndex.yaml"

# Key names that suggest a credential are forbidden in global config.
# Does NOT match legitimate keys like token_budget or max_token_length.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["watch", "store", "embedding", "query", "chunker"])

_PROJECT_TEMPLATE = """\
# syndex project configuration.
# NEVER store API keys here. Use environment variables, e.g.
#   export OPENAI_API_KEY=sk-...

watch:
  roots:
    - src/main/wso2mi/artifacts
  pattern: "*.xml"
  exclude: []
  poll_interval: 10

store:
  path: .syndex.db

embedding:
  model: ollama/all-minilm
  dimensions: 384

query:
  top_k: 5
"""


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class WatchCfg:
    """Document discovery (syndex.yaml: watch:)."""

    roots: list[str] = field(default_factory=list)
    pattern: str = "*.xml"
    exclude: list[str] = field(default_factory=list)
    poll_interval: float = 10.0


@dataclass
class StoreCfg:
    """Fragment store location (syndex.yaml: store:)."""

    path: str = ".syndex.db"


@dataclass
class EmbeddingCfg:
    """Embedding model (syndex.yaml: embedding:).

    Attributes:
        model: LiteLLM ``provider/model`` string, or ``dummy-sha256``.
        dimensions: Output dimension of the model (384 for all-MiniLM-L6-v2).
        api_base: Optional endpoint override for self-hosted models.
    """

    model: str = "ollama/all-minilm"
    dimensions: int = 384
    api_base: str | None = None


@dataclass
class QueryCfg:
    top_k: int = 5


@dataclass
class ChunkerCfg:
    """Embedding-text shaping (syndex.yaml: chunker:)."""

    token_budget: int = 150
    min_token_length: int = 3
    max_token_length: int = 50


@dataclass
class SyndexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    watch: WatchCfg = field(default_factory=WatchCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    query: QueryCfg = field(default_factory=QueryCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    project_dir: Path = field(default_factory=Path.cwd)

    def watch_roots(self) -> list[Path]:
        """Watch roots as paths, relative ones resolved against project_dir."""
        return [_resolve(self.project_dir, r) for r in self.watch.roots]

    def store_path(self) -> Path:
        return _resolve(self.project_dir, self.store.path)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: SyndexConfig) -> None:
    if cfg.watch.poll_interval <= 0:
        raise ConfigError(f"watch.poll_interval must be > 0, got {cfg.watch.poll_interval}")
    if cfg.embedding.dimensions < 1:
        raise ConfigError(f"embedding.dimensions must be >= 1, got {cfg.embedding.dimensions}")
    if cfg.query.top_k < 1:
        raise ConfigError(f"query.top_k must be >= 1, got {cfg.query.top_k}")
    if cfg.chunker.token_budget < 1:
        raise ConfigError(f"chunker.token_budget must be >= 1, got {cfg.chunker.token_budget}")
    if not 1 <= cfg.chunker.min_token_length < cfg.chunker.max_token_length:
        raise ConfigError(
            "chunker token lengths must satisfy 1 <= min_token_length < max_token_length"
        )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _as_str_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str) or not isinstance(value, list):
        raise ConfigError(f"{name} must be a list of strings, got {type(value).__name__}")
    return [str(v) for v in value]


def _cfg_from_dict(data: dict[str, Any], project_dir: Path) -> SyndexConfig:
    """Build a *SyndexConfig* from a merged raw YAML dict."""
    cfg = SyndexConfig(project_dir=project_dir)

    try:
        if "watch" in data:
            w = data["watch"] or {}
            cfg.watch = WatchCfg(
                roots=_as_str_list(w.get("roots"), "watch.roots"),
                pattern=str(w.get("pattern", cfg.watch.pattern)),
                exclude=_as_str_list(w.get("exclude"), "watch.exclude"),
                poll_interval=float(w.get("poll_interval", cfg.watch.poll_interval)),
            )

        if "store" in data:
            s = data["store"] or {}
            cfg.store = StoreCfg(path=str(s.get("path", cfg.store.path)))

        if "embedding" in data:
            e = data["embedding"] or {}
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
                api_base=e.get("api_base") or cfg.embedding.api_base,
            )

        if "query" in data:
            q = data["query"] or {}
            cfg.query = QueryCfg(top_k=int(q.get("top_k", cfg.query.top_k)))

        if "chunker" in data:
            c = data["chunker"] or {}
            cfg.chunker = ChunkerCfg(
                token_budget=int(c.get("token_budget", cfg.chunker.token_budget)),
                min_token_length=int(c.get("min_token_length", cfg.chunker.min_token_length)),
                max_token_length=int(c.get("max_token_length", cfg.chunker.max_token_length)),
            )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: SyndexConfig) -> SyndexConfig:
    """Apply SYNDEX_* environment variable overrides (layer 2)."""
    if model := os.environ.get("SYNDEX_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if db := os.environ.get("SYNDEX_DB"):
        cfg.store.path = db
    if interval := os.environ.get("SYNDEX_POLL_INTERVAL"):
        try:
            cfg.watch.poll_interval = float(interval)
        except ValueError as exc:
            raise ConfigError(f"SYNDEX_POLL_INTERVAL must be a number, got '{interval}'") from exc
    return cfg


def _resolve(base: Path, value: str) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else base / p


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> SyndexConfig:
    """Load and return a merged *SyndexConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *syndex.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is malformed or out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged, search_dir)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg


def ensure_project_config(project_dir: Path) -> tuple[Path, bool]:
    """Write a default ``syndex.yaml`` into *project_dir* unless one exists.

    Returns:
        (path to the config file, True if it was created now).
    """
    target = project_dir / PROJECT_CONFIG_NAME
    if target.exists():
        return target, False
    project_dir.mkdir(parents=True, exist_ok=True)
    target.write_text(_PROJECT_TEMPLATE, encoding="utf-8")
    return target, True
