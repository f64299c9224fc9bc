"""repohelp configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (REPOHELP_EMBEDDING_MODEL, REPOHELP_SUMMARY_MODEL,
                             REPOHELP_CONCURRENCY)
  3. Per-project repohelp.yaml
  4. Global ~/.repohelp/config.yaml  (model defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys or tokens; use environment
variables instead. All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from repohelp.ingest.sources import DEFAULT_EXTENSIONS

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".repohelp"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "repohelp.yaml"

# Fields that suggest a credential — forbidden in global config.
# Does NOT match legitimate config keys like max_tokens.
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

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "summary", "query", "ingest", "source"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model + retry policy (repohelp.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    max_attempts: int = 3
    retry_delay: float = 1.0


@dataclass
class SummaryCfg:
    """Per-file summarizer (repohelp.yaml: summary:)."""

    model: str = "openai/gpt-4o-mini"
    max_chars: int = 12_000


@dataclass
class QueryCfg:
    """Query pipeline (repohelp.yaml: query:)."""

    top_k: int = 3
    expand: bool = True
    expansion_model: str = "openai/gpt-4o-mini"


@dataclass
class IngestCfg:
    """Ingestion orchestrator (repohelp.yaml: ingest:).

    Attributes:
        concurrency: Maximum per-file tasks in flight.
        max_files: Only the first N listed files are indexed (None = all).
    """

    concurrency: int = 10
    max_files: int | None = None


@dataclass
class SourceCfg:
    """GitHub content source (repohelp.yaml: source:)."""

    ref: str = "main"
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))


@dataclass
class RepoHelpConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    summary: SummaryCfg = field(default_factory=SummaryCfg)
    query: QueryCfg = field(default_factory=QueryCfg)
    ingest: IngestCfg = field(default_factory=IngestCfg)
    source: SourceCfg = field(default_factory=SourceCfg)


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


def _validate(cfg: RepoHelpConfig) -> None:
    """Raise ConfigError for values the pipeline cannot run with."""
    if cfg.ingest.concurrency < 1:
        raise ConfigError(f"ingest.concurrency must be >= 1, got {cfg.ingest.concurrency}")
    if cfg.ingest.max_files is not None and cfg.ingest.max_files < 1:
        raise ConfigError(f"ingest.max_files must be >= 1, got {cfg.ingest.max_files}")
    if cfg.embedding.max_attempts < 1:
        raise ConfigError(
            f"embedding.max_attempts must be >= 1, got {cfg.embedding.max_attempts}"
        )
    if cfg.embedding.retry_delay < 0:
        raise ConfigError(
            f"embedding.retry_delay must be >= 0, got {cfg.embedding.retry_delay}"
        )
    if cfg.query.top_k < 1:
        raise ConfigError(f"query.top_k must be >= 1, got {cfg.query.top_k}")
    if not cfg.source.extensions:
        raise ConfigError("source.extensions must list at least one extension")


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


def _int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None


def _float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}") from None


def _bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    raise ConfigError(f"{key} must be true or false, got {value!r}")


def _cfg_from_dict(data: dict[str, Any]) -> RepoHelpConfig:
    """Build a *RepoHelpConfig* from a merged raw YAML dict."""
    cfg = RepoHelpConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            max_attempts=_int(e.get("max_attempts", cfg.embedding.max_attempts), "embedding.max_attempts"),
            retry_delay=_float(e.get("retry_delay", cfg.embedding.retry_delay), "embedding.retry_delay"),
        )

    if "summary" in data:
        s = data["summary"] or {}
        cfg.summary = SummaryCfg(
            model=str(s.get("model", cfg.summary.model)),
            max_chars=_int(s.get("max_chars", cfg.summary.max_chars), "summary.max_chars"),
        )

    if "query" in data:
        q = data["query"] or {}
        cfg.query = QueryCfg(
            top_k=_int(q.get("top_k", cfg.query.top_k), "query.top_k"),
            expand=_bool(q.get("expand", cfg.query.expand), "query.expand"),
            expansion_model=str(q.get("expansion_model", cfg.query.expansion_model)),
        )

    if "ingest" in data:
        i = data["ingest"] or {}
        max_files = i.get("max_files", cfg.ingest.max_files)
        cfg.ingest = IngestCfg(
            concurrency=_int(i.get("concurrency", cfg.ingest.concurrency), "ingest.concurrency"),
            max_files=None if max_files is None else _int(max_files, "ingest.max_files"),
        )

    if "source" in data:
        src = data["source"] or {}
        cfg.source = SourceCfg(
            ref=str(src.get("ref", cfg.source.ref)),
            api_url=str(src.get("api_url", cfg.source.api_url)),
            raw_url=str(src.get("raw_url", cfg.source.raw_url)),
            extensions=[
                e if str(e).startswith(".") else f".{e}"
                for e in src.get("extensions", cfg.source.extensions)
            ],
        )

    return cfg


def _apply_env_overrides(cfg: RepoHelpConfig) -> RepoHelpConfig:
    """Apply REPOHELP_* environment variable overrides (layer 2)."""
    if model := os.environ.get("REPOHELP_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("REPOHELP_SUMMARY_MODEL"):
        cfg.summary.model = model
    if concurrency := os.environ.get("REPOHELP_CONCURRENCY"):
        cfg.ingest.concurrency = _int(concurrency, "REPOHELP_CONCURRENCY")
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> RepoHelpConfig:
    """Load and return a merged *RepoHelpConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *repohelp.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a
            value is out of range.
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
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    _validate(cfg)
    return cfg
