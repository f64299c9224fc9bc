"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Use litellm's bundled model cost map; its background remote fetch can
# deadlock concurrent imports when the network is unavailable.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest

from repohelp.db.connection import Database
from repohelp.db.schema import initialize


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".repohelp.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()
