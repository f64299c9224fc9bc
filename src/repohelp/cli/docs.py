"""repohelp docs — page through stored entries for inspection."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from repohelp.cli.errors import err_invalid_repo, err_no_db
from repohelp.cli.ingest import load_cli_config, open_db
from repohelp.identity import NamespaceError
from repohelp.service import build_service

console = Console()


def docs_cmd(
    repo: Annotated[
        str | None, typer.Option("--repo", "-r", help="Only show entries of OWNER/REPO.")
    ] = None,
    page: Annotated[int, typer.Option("--page", "-p", min=1, help="Page number.")] = 1,
    limit: Annotated[int, typer.Option("--limit", "-l", min=1, help="Entries per page.")] = 20,
    db: Annotated[Path, typer.Option("--db", help="Path to .repohelp.db.")] = Path(".repohelp.db"),
) -> None:
    """List stored documents, page by page."""
    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    cfg = load_cli_config()
    conn = open_db(db)
    try:
        result = build_service(cfg, conn).list_documents(page=page, limit=limit, repo=repo)
    except NamespaceError:
        console.print(err_invalid_repo(repo or ""))
        raise typer.Exit(1)
    finally:
        conn.close()

    if not result.entries:
        console.print("[dim]No documents found.[/]")
        return

    pages = max(1, -(-result.total // result.limit))
    table = Table(title=f"Documents — page {result.page}/{pages} ({result.total} total)")
    table.add_column("docId", style="cyan")
    table.add_column("Namespace")
    table.add_column("File")
    table.add_column("Summary")
    table.add_column("Code", justify="center")
    table.add_column("Embedding", style="dim")
    for e in result.entries:
        summary = e.chunk if len(e.chunk) <= 80 else e.chunk[:77] + "..."
        preview = ", ".join(f"{x:.3f}" for x in e.embedding_preview[:3])
        table.add_row(
            e.doc_id,
            e.namespace,
            e.file,
            summary,
            "✓" if e.code else "",
            f"[{preview}, …]" if preview else "",
        )
    console.print(table)
