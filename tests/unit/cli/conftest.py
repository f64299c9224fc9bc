"""Fixtures for CLI tests: isolated config, API key, fake LLM models."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from repohelp.ingest.summarizer import SummaryChunk


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every CLI test in tmp_path with no config files and a fake API key."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("repohelp.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    for var in ("REPOHELP_EMBEDDING_MODEL", "REPOHELP_SUMMARY_MODEL", "REPOHELP_CONCURRENCY"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def mock_models():
    """Patch the summarizer + embedder built by the service (no litellm calls)."""
    with (
        patch("repohelp.service.CodeSummarizer") as mock_sum,
        patch("repohelp.service.RetryingEmbedder") as mock_emb,
    ):
        mock_sum.return_value.summarize.side_effect = lambda path, raw: [
            SummaryChunk(text=f"Summary of {path}")
        ]
        mock_emb.return_value.embed.return_value = [1.0, 0.0, 0.0]
        yield mock_sum, mock_emb


@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    root = tmp_path / "checkout"
    (root / "src").mkdir(parents=True)
    (root / "src" / "login.js").write_text("export function login() {}")
    (root / "README.md").write_text("# Demo app")
    (root / "logo.png").write_bytes(b"\x89PNG")
    return root
