"""Tests for repohelp docs + version CLI commands."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from repohelp.cli.main import app

runner = CliRunner()


def _ingest(checkout: Path, db_path: Path, repo: str = "acme/web") -> None:
    result = runner.invoke(
        app, ["ingest", "--repo", repo, "--local", str(checkout), "--db", str(db_path)]
    )
    assert result.exit_code == 0, result.output


def test_docs_without_db(tmp_path):
    result = runner.invoke(app, ["docs", "--db", str(tmp_path / "none.db")])
    assert result.exit_code == 1
    assert "No database found" in result.output


def test_docs_lists_entries(checkout, tmp_path, mock_models):
    db_path = tmp_path / ".repohelp.db"
    _ingest(checkout, db_path)

    result = runner.invoke(app, ["docs", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "2 total" in result.output
    assert "page 1/1" in result.output


def test_docs_paging(checkout, tmp_path, mock_models):
    db_path = tmp_path / ".repohelp.db"
    _ingest(checkout, db_path)

    result = runner.invoke(app, ["docs", "--db", str(db_path), "--limit", "1", "--page", "2"])
    assert result.exit_code == 0
    assert "page 2/2" in result.output


def test_docs_repo_filter(checkout, tmp_path, mock_models):
    db_path = tmp_path / ".repohelp.db"
    _ingest(checkout, db_path, "acme/web")
    _ingest(checkout, db_path, "acme/api")

    result = runner.invoke(app, ["docs", "--db", str(db_path), "--repo", "acme/api"])
    assert result.exit_code == 0
    assert "2 total" in result.output

    result = runner.invoke(app, ["docs", "--db", str(db_path), "--repo", "nobody/here"])
    assert result.exit_code == 0
    assert "No documents found" in result.output


def test_docs_invalid_repo(checkout, tmp_path, mock_models):
    db_path = tmp_path / ".repohelp.db"
    _ingest(checkout, db_path)
    result = runner.invoke(app, ["docs", "--db", str(db_path), "--repo", "acme"])
    assert result.exit_code == 1
    assert "OWNER/REPO" in result.output


def test_version_command():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("repohelp ")


def test_version_flag():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "repohelp" in result.output
