"""Existing-state resolver — which docIds a namespace already holds."""

from __future__ import annotations

import logging

from repohelp.db.repository import NamespaceNotFoundError, StoreAdapter

logger = logging.getLogger(__name__)


def list_existing_ids(store: StoreAdapter, namespace: str) -> set[str]:
    """Return the docIds already stored under *namespace*.

    A namespace the store has never seen is expected on first ingest and
    yields an empty set. Any other store error propagates.

    The result is a snapshot taken once per run, not a lock: concurrent runs
    may still both decide a docId is new (the store's write-time check
    settles that).
    """
    try:
        ids = set(store.list_ids(namespace))
    except NamespaceNotFoundError:
        logger.info("No documents stored yet for %s", namespace)
        return set()
    logger.info("Found %d existing ids for %s", len(ids), namespace)
    return ids
