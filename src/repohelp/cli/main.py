"""repohelp CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from repohelp.cli.docs import docs_cmd
from repohelp.cli.ingest import ingest_cmd
from repohelp.cli.search import analyze_cmd, search_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("repohelp")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"repohelp {_installed_version()}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


app = typer.Typer(
    name="repohelp",
    help=(
        "repohelp — incremental code indexing + semantic issue search.\n\n"
        "  repohelp ingest   Index new files of a repository.\n"
        "  repohelp analyze  Index, then find the files relevant to an issue."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log retries, skips and store writes.")
    ] = False,
) -> None:
    """repohelp — incremental code indexing + semantic issue search."""
    _configure_logging(verbose)


app.command("ingest")(ingest_cmd)
app.command("search")(search_cmd)
app.command("analyze")(analyze_cmd)
app.command("docs")(docs_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed repohelp version."""
    typer.echo(f"repohelp {_installed_version()}")


if __name__ == "__main__":
    app()
