"""repohelp rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from repohelp.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_map = {
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
        "cohere": "COHERE_API_KEY",
        "gemini": "GEMINI_API_KEY",
        "mistral": "MISTRAL_API_KEY",
        "azure": "AZURE_API_KEY",
        "voyage": "VOYAGE_API_KEY",
    }
    env_var = env_map.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_db(db_path: str = ".repohelp.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  repohelp ingest --repo OWNER/REPO"
    )


def err_embedding_model_mismatch(db_models: list[str], config_model: str) -> str:
    """Embedding model stored in DB does not match current config."""
    return (
        f"[red]Error:[/] Embedding model mismatch.\n"
        f"  Database uses:  {', '.join(db_models)}\n"
        f"  Config has:     {config_model}\n"
        "  Use a new --db for the new model, or set embedding.model in repohelp.yaml "
        "to match the database."
    )


def err_invalid_repo(repo: str) -> str:
    """Repository slug is not OWNER/REPO."""
    return (
        f"[red]Error:[/] Invalid repository '{repo}'.\n"
        "  Use the form:  --repo OWNER/REPO"
    )


def err_missing_fields(detail: str) -> str:
    """Required request fields are missing."""
    return (
        f"[red]Error:[/] {detail}.\n"
        "  Provide them with:  --repo OWNER/REPO --title TEXT --body TEXT"
    )


def err_no_files(repo: str) -> str:
    """The source listed no indexable files."""
    return (
        f"[yellow]No indexable files found in '{repo}'.[/]\n"
        "  Check the branch (source.ref) and source.extensions in repohelp.yaml."
    )


def err_fetch_failed(repo: str, detail: str) -> str:
    """Listing files of the repository failed."""
    return (
        f"[red]Error:[/] Could not list files of '{repo}': {detail}\n"
        "  Check the repository name and branch, or set GITHUB_TOKEN for private repos."
    )


def err_no_match(repo: str) -> str:
    """Similarity search returned nothing."""
    return (
        f"[yellow]No matching documents found[/] in '{repo}'.\n"
        "  Run:  repohelp ingest --repo " + repo + "  to index the repository first."
    )


def err_config(detail: str) -> str:
    """Config file is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {detail}\n"
        "  Fix repohelp.yaml (or ~/.repohelp/config.yaml) and retry."
    )
