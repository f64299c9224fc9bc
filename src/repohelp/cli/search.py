"""repohelp search / analyze — find the chunks most relevant to an issue.

  repohelp search   Query an already indexed repository.
  repohelp analyze  Index new files first, then query (ingest + search).
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from repohelp.cli.errors import (
    err_fetch_failed,
    err_invalid_repo,
    err_missing_fields,
    err_no_db,
    err_no_files,
    err_no_match,
)
from repohelp.cli.ingest import (
    build_cli_service,
    indexing_progress,
    load_cli_config,
    open_db,
    print_report,
)
from repohelp.config import RepoHelpConfig
from repohelp.db.models import MatchResult
from repohelp.identity import NamespaceError, normalize_namespace
from repohelp.ingest.orchestrator import IngestInputError
from repohelp.ingest.sources import FetchError
from repohelp.rag.embedder import EmbeddingFailure
from repohelp.rag.retriever import NoMatchError, QueryInputError

console = Console()

_DEFAULT_DB = Path(".repohelp.db")


def search_cmd(
    repo: Annotated[str, typer.Option("--repo", "-r", help="Repository namespace, OWNER/REPO.")],
    title: Annotated[str, typer.Option("--title", "-t", help="Issue title / question.")],
    body: Annotated[str, typer.Option("--body", "-b", help="Issue body.")] = "",
    db: Annotated[Path, typer.Option("--db", help="Path to .repohelp.db.")] = _DEFAULT_DB,
    top_k: Annotated[
        int | None, typer.Option("--top-k", "-k", min=1, help="Number of matches.")
    ] = None,
    no_expand: Annotated[
        bool, typer.Option("--no-expand", help="Embed the raw query (skip LLM expansion).")
    ] = False,
) -> None:
    """Search an indexed repository for the chunks most relevant to a query."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    cfg = load_cli_config(top_k=top_k, no_expand=no_expand)
    conn = open_db(db)
    try:
        service = build_cli_service(cfg, conn, models=_required_models(cfg, False))
        try:
            matches = service.search(repo, title, body)
        except NamespaceError:
            console.print(err_invalid_repo(repo))
            raise typer.Exit(1)
        except QueryInputError as exc:
            console.print(err_missing_fields(str(exc)))
            raise typer.Exit(1)
        except NoMatchError:
            console.print(err_no_match(repo))
            raise typer.Exit(1)
        except EmbeddingFailure as exc:
            console.print(f"[red]Error:[/] {exc}")
            raise typer.Exit(1)
    finally:
        conn.close()

    print_matches(matches)


def analyze_cmd(
    repo: Annotated[str, typer.Option("--repo", "-r", help="Repository namespace, OWNER/REPO.")],
    title: Annotated[str, typer.Option("--title", "-t", help="Issue title.")],
    body: Annotated[str, typer.Option("--body", "-b", help="Issue body.")],
    local: Annotated[
        Path | None,
        typer.Option("--local", help="Read files from this local checkout instead of GitHub."),
    ] = None,
    db: Annotated[
        Path, typer.Option("--db", help="Path to .repohelp.db (created if missing).")
    ] = _DEFAULT_DB,
) -> None:
    """Index new files of a repository, then find the files relevant to an issue."""
    try:
        namespace = normalize_namespace(repo)
    except NamespaceError:
        console.print(err_invalid_repo(repo))
        raise typer.Exit(1)

    cfg = load_cli_config()
    conn = open_db(db)
    try:
        service = build_cli_service(cfg, conn, local=local, models=_required_models(cfg, True))
        console.print(f"\n[bold]→ {namespace}[/]")
        with indexing_progress() as prog:
            task = prog.add_task("Indexing…", total=None)
            try:
                result = service.analyze(
                    namespace, title, body, on_file=lambda path, status: prog.advance(task)
                )
            except QueryInputError as exc:
                console.print(err_missing_fields(str(exc)))
                raise typer.Exit(1)
            except FetchError as exc:
                console.print(err_fetch_failed(namespace, str(exc)))
                raise typer.Exit(1)
            except IngestInputError:
                console.print(err_no_files(namespace))
                raise typer.Exit(1)
            except NoMatchError:
                console.print(err_no_match(namespace))
                raise typer.Exit(1)
            except EmbeddingFailure as exc:
                console.print(f"[red]Error:[/] {exc}")
                raise typer.Exit(1)
    finally:
        conn.close()

    print_report(result.namespace, result.report)
    print_matches(result.matches)


def _required_models(cfg: RepoHelpConfig, summarizes: bool) -> tuple[str, ...]:
    models = [cfg.embedding.model]
    if summarizes:
        models.append(cfg.summary.model)
    if cfg.query.expand:
        models.append(cfg.query.expansion_model)
    return tuple(models)


def print_matches(matches: list[MatchResult]) -> None:
    table = Table(title="Relevant files", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("File", style="cyan")
    table.add_column("Distance", justify="right")
    table.add_column("Match")
    for i, m in enumerate(matches, start=1):
        snippet = m.match if len(m.match) <= 300 else m.match[:297] + "..."
        table.add_row(str(i), m.file, f"{m.distance:.4f}", snippet)
    console.print(table)
