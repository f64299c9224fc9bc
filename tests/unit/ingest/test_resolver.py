"""Tests for the existing-state resolver."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from repohelp.db.models import IndexEntry
from repohelp.db.repository import NamespaceNotFoundError, Repository
from repohelp.ingest.resolver import list_existing_ids


def test_unknown_namespace_is_empty_set():
    store = MagicMock()
    store.list_ids.side_effect = NamespaceNotFoundError("acme/web")
    assert list_existing_ids(store, "acme/web") == set()


def test_returns_ids_as_set():
    store = MagicMock()
    store.list_ids.return_value = ["acme/web::a.py", "acme/web::a.py::unit-1", "acme/web::a.py"]
    assert list_existing_ids(store, "acme/web") == {"acme/web::a.py", "acme/web::a.py::unit-1"}


def test_other_store_errors_propagate():
    store = MagicMock()
    store.list_ids.side_effect = RuntimeError("disk on fire")
    with pytest.raises(RuntimeError, match="disk on fire"):
        list_existing_ids(store, "acme/web")


def test_against_repository(tmp_db):
    repo = Repository(tmp_db, "openai/text-embedding-3-small")
    assert list_existing_ids(repo, "acme/web") == set()
    repo.add_batch([
        IndexEntry(doc_id="acme/web::a.py", namespace="acme/web", file="a.py",
                   ordinal=0, chunk="s", embedding=[1.0, 0.0]),
    ])
    assert list_existing_ids(repo, "acme/web") == {"acme/web::a.py"}
    assert list_existing_ids(repo, "acme/api") == set()
