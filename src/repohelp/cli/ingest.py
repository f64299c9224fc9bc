"""repohelp ingest — index a repository into .repohelp.db.

Files come from GitHub (default, --repo OWNER/REPO at source.ref) or from a
local checkout (--local DIR, namespace still given by --repo). Files already
indexed for the namespace are skipped; only new files are fetched,
summarized and embedded.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from repohelp.cli.errors import (
    err_config,
    err_embedding_model_mismatch,
    err_fetch_failed,
    err_invalid_repo,
    err_no_api_key,
    err_no_files,
)
from repohelp.config import ConfigError, RepoHelpConfig, load_config
from repohelp.db.connection import Database
from repohelp.db.repository import Repository
from repohelp.db.schema import initialize
from repohelp.identity import NamespaceError, normalize_namespace
from repohelp.ingest.orchestrator import IngestInputError, IngestReport
from repohelp.ingest.sources import FetchError, LocalSource
from repohelp.rag.llm_client import provider_of, validate_api_key
from repohelp.service import RepoHelpService, build_service

console = Console()

_DEFAULT_DB = ".repohelp.db"


def ingest_cmd(
    repo: Annotated[
        str,
        typer.Option("--repo", "-r", help="Repository namespace, OWNER/REPO."),
    ],
    local: Annotated[
        Path | None,
        typer.Option("--local", help="Read files from this local checkout instead of GitHub."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to .repohelp.db (created if missing)."),
    ] = Path(_DEFAULT_DB),
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", min=1, help="Files processed in parallel."),
    ] = None,
    max_files: Annotated[
        int | None,
        typer.Option("--max-files", min=1, help="Only index the first N listed files."),
    ] = None,
) -> None:
    """Index new files of a repository (already indexed files are skipped)."""
    cfg = load_cli_config(concurrency=concurrency, max_files=max_files)
    namespace = _namespace_or_exit(repo)
    conn = open_db(db)
    try:
        service = build_cli_service(cfg, conn, local=local)
        _, report = run_ingest(service, namespace)
    finally:
        conn.close()

    print_report(namespace, report)
    if report.failed:
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Shared CLI helpers (also used by search / analyze / docs)
# ------------------------------------------------------------------


def load_cli_config(
    concurrency: int | None = None,
    max_files: int | None = None,
    top_k: int | None = None,
    no_expand: bool = False,
) -> RepoHelpConfig:
    """Load config and apply CLI flag overrides (layer 1). Exits on ConfigError."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if concurrency is not None:
        cfg.ingest.concurrency = concurrency
    if max_files is not None:
        cfg.ingest.max_files = max_files
    if top_k is not None:
        cfg.query.top_k = top_k
    if no_expand:
        cfg.query.expand = False
    return cfg


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the project database and run migrations."""
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def build_cli_service(
    cfg: RepoHelpConfig,
    conn: sqlite3.Connection,
    local: Path | None = None,
    models: tuple[str, ...] | None = None,
) -> RepoHelpService:
    """Check API keys + embedding model compatibility, then build the service."""
    required = models if models is not None else (cfg.embedding.model, cfg.summary.model)
    for model in dict.fromkeys(required):
        try:
            validate_api_key(model)
        except EnvironmentError:
            console.print(err_no_api_key(provider_of(model)))
            raise typer.Exit(1)

    stored_models = Repository(conn, cfg.embedding.model).embedding_models()
    if stored_models and cfg.embedding.model not in stored_models:
        console.print(err_embedding_model_mismatch(stored_models, cfg.embedding.model))
        raise typer.Exit(1)

    source = (
        LocalSource(local, extensions=cfg.source.extensions) if local is not None else None
    )
    return build_service(cfg, conn, source=source)


def indexing_progress() -> Progress:
    """Transient spinner counting settled files."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TextColumn("[dim]{task.completed} files settled[/dim]"),
        transient=True,
        console=console,
    )


def run_ingest(service: RepoHelpService, namespace: str) -> tuple[str, IngestReport]:
    """Ingest *namespace* behind a progress spinner. Exits on listing errors."""
    console.print(f"\n[bold]→ {namespace}[/]")
    with indexing_progress() as prog:
        task = prog.add_task("Indexing…", total=None)
        try:
            return service.ingest(namespace, on_file=lambda path, status: prog.advance(task))
        except FetchError as exc:
            console.print(err_fetch_failed(namespace, str(exc)))
            raise typer.Exit(1)
        except IngestInputError:
            console.print(err_no_files(namespace))
            raise typer.Exit(1)


def print_report(namespace: str, report: IngestReport) -> None:
    console.print(
        f"  [green]✓[/] {report.stored} stored · "
        f"[dim]{report.skipped} skipped (already indexed)[/]"
    )
    for path in report.failed:
        console.print(f"  [red]✗[/] {path}")
    if report.failed:
        console.print(
            f"  [yellow]{len(report.failed)} file(s) failed[/] — re-run "
            f"'repohelp ingest --repo {namespace}' to retry files that stored nothing."
        )


def _namespace_or_exit(repo: str) -> str:
    try:
        return normalize_namespace(repo)
    except NamespaceError:
        console.print(err_invalid_repo(repo))
        raise typer.Exit(1)
