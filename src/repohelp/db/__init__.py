"""repohelp store layer."""

from repohelp.db.connection import Database
from repohelp.db.migrations import MIGRATIONS, run_migrations
from repohelp.db.repository import NamespaceNotFoundError, Repository, StoreAdapter
from repohelp.db.schema import initialize
from repohelp.db.vectors import ensure_vec_table, model_to_slug, vec_table_name

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "NamespaceNotFoundError",
    "Repository",
    "StoreAdapter",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
