"""Store adapter: index entries + sqlite-vec embeddings, scoped by namespace.

Single interface for: existing-id lookup, filtered batch writes, cosine KNN
search and paging through stored entries. Vec tables are model-managed
(ensure_vec_table); the repository handles read + write.
"""

from __future__ import annotations

import json
import logging
import math
import sqlite3
from typing import Iterable, Protocol

from repohelp.db.models import EntryPage, IndexEntry, MatchResult, StoredEntry
from repohelp.db.vectors import (
    ensure_vec_table,
    model_to_slug,
    vec_table_dimensions,
    vec_table_exists,
    vec_table_name,
)

logger = logging.getLogger(__name__)

_PREVIEW_DIMS = 10


class NamespaceNotFoundError(LookupError):
    """Raised when a namespace has no entries in the store."""

    def __init__(self, namespace: str) -> None:
        super().__init__(f"Namespace '{namespace}' not found in store")
        self.namespace = namespace


class StoreAdapter(Protocol):
    """Operations the ingestion and query pipelines need from a vector store."""

    def list_ids(self, namespace: str) -> list[str]: ...

    def add_batch(self, entries: Iterable[IndexEntry]) -> int: ...

    def query_similar(
        self, vector: list[float], namespace: str, top_k: int
    ) -> list[MatchResult]: ...


def is_valid_vector(vector: object) -> bool:
    """True for a non-empty sequence of finite numbers (booleans excluded)."""
    if not isinstance(vector, (list, tuple)) or not vector:
        return False
    return all(
        isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)
        for x in vector
    )


class Repository:
    """SQLite + sqlite-vec implementation of :class:`StoreAdapter`.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use. All vectors written and queried through one
    Repository belong to *embedding_model* and live in that model's vec table.
    """

    def __init__(self, conn: sqlite3.Connection, embedding_model: str) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see repohelp.db.schema.initialize).
            embedding_model: LiteLLM embedding model string; selects the vec table.
        """
        self._conn = conn
        self._model = embedding_model
        self._slug = model_to_slug(embedding_model)
        self._vec_table = vec_table_name(self._slug)

    @property
    def vec_table(self) -> str:
        return self._vec_table

    # ------------------------------------------------------------------
    # Existing state
    # ------------------------------------------------------------------

    def list_ids(self, namespace: str) -> list[str]:
        """Return every docId stored under *namespace*.

        Raises:
            NamespaceNotFoundError: If the namespace has no entries at all.
        """
        rows = self._conn.execute(
            "SELECT doc_id FROM entries WHERE namespace = ? ORDER BY id", (namespace,)
        ).fetchall()
        if not rows:
            raise NamespaceNotFoundError(namespace)
        return [r["doc_id"] for r in rows]

    def embedding_models(self) -> list[str]:
        """Return the distinct embedding models that entries were stored with."""
        rows = self._conn.execute(
            "SELECT DISTINCT embedding_model FROM entries ORDER BY embedding_model"
        ).fetchall()
        return [r["embedding_model"] for r in rows]

    def count(self, namespace: str | None = None) -> int:
        if namespace is None:
            return self._conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM entries WHERE namespace = ?", (namespace,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_batch(self, entries: Iterable[IndexEntry]) -> int:
        """Insert *entries* whose docId is not yet stored. Returns rows written.

        Malformed entries (empty docId, empty/non-numeric vector, wrong
        dimension) are dropped with a warning before anything is written.
        Existence is re-checked at insert time with ``ON CONFLICT DO NOTHING``
        inside one transaction, so concurrent runs that both decided a docId
        was new cannot store it twice.
        """
        valid = [e for e in entries if self._is_storable(e)]
        if not valid:
            logger.info("No valid entries to store")
            return 0

        table = ensure_vec_table(self._conn, self._slug, len(valid[0].embedding))
        dims = vec_table_dimensions(self._conn, table)
        sized: list[IndexEntry] = []
        for entry in valid:
            if len(entry.embedding) != dims:
                logger.warning(
                    "Dropping %s: embedding has %d dimensions, index expects %s",
                    entry.doc_id, len(entry.embedding), dims,
                )
                continue
            sized.append(entry)

        written = 0
        with self._conn:
            for entry in sized:
                cur = self._conn.execute(
                    """
                    INSERT INTO entries (doc_id, namespace, file, ordinal, chunk, code, embedding_model)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(doc_id) DO NOTHING
                    """,
                    (
                        entry.doc_id,
                        entry.namespace,
                        entry.file,
                        entry.ordinal,
                        entry.chunk,
                        entry.code,
                        self._model,
                    ),
                )
                if cur.rowcount != 1:
                    continue
                self._conn.execute(
                    f"INSERT INTO {table}(rowid, namespace, embedding) VALUES (?, ?, ?)",
                    (cur.lastrowid, entry.namespace, json.dumps([float(x) for x in entry.embedding])),
                )
                written += 1

        already = len(sized) - written
        if already:
            logger.info("%d entries already present, not re-added", already)
        logger.info("Stored %d new entries", written)
        return written

    @staticmethod
    def _is_storable(entry: IndexEntry) -> bool:
        if not entry.doc_id or not is_valid_vector(entry.embedding):
            logger.warning("Skipping invalid entry for %s", entry.doc_id or entry.file)
            return False
        return True

    # ------------------------------------------------------------------
    # Similarity search
    # ------------------------------------------------------------------

    def query_similar(
        self, vector: list[float], namespace: str, top_k: int = 3
    ) -> list[MatchResult]:
        """Cosine KNN restricted to *namespace*. Returns hits by ascending distance.

        An unknown namespace, or a store without any vectors yet, yields [].

        Raises:
            ValueError: If *vector* is malformed, *top_k* < 1, or the vector
                dimension does not match the index.
        """
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")
        if not is_valid_vector(vector):
            raise ValueError("Query vector must be a non-empty sequence of numbers")
        if not vec_table_exists(self._conn, self._vec_table):
            return []

        dims = vec_table_dimensions(self._conn, self._vec_table)
        if dims is not None and len(vector) != dims:
            raise ValueError(
                f"Query vector has {len(vector)} dimensions; "
                f"index for '{self._model}' expects {dims}"
            )

        vec_rows = self._conn.execute(
            f"""
            SELECT rowid, distance FROM {self._vec_table}
            WHERE embedding MATCH ? AND k = ? AND namespace = ?
            ORDER BY distance
            """,
            (json.dumps([float(x) for x in vector]), top_k, namespace),
        ).fetchall()

        results: list[MatchResult] = []
        for vec_row in vec_rows:
            row = self._conn.execute(
                "SELECT doc_id, namespace, file, chunk, code FROM entries WHERE id = ?",
                (vec_row["rowid"],),
            ).fetchone()
            if row is None or row["namespace"] != namespace:
                continue
            results.append(
                MatchResult(
                    file=row["file"],
                    match=row["chunk"],
                    code=row["code"],
                    doc_id=row["doc_id"],
                    namespace=row["namespace"],
                    distance=float(vec_row["distance"]),
                )
            )
        return results

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def list_entries(
        self, page: int = 1, limit: int = 20, namespace: str | None = None
    ) -> EntryPage:
        """Return one page of stored entries, oldest first.

        Each entry carries the first 10 embedding components as a preview.
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        sql = "SELECT id, doc_id, namespace, file, ordinal, chunk, code, created_at FROM entries"
        params: tuple = ()
        if namespace is not None:
            sql += " WHERE namespace = ?"
            params = (namespace,)
        sql += " ORDER BY id LIMIT ? OFFSET ?"
        rows = self._conn.execute(sql, (*params, limit, (page - 1) * limit)).fetchall()

        has_vectors = vec_table_exists(self._conn, self._vec_table)
        entries = [
            StoredEntry(
                id=r["id"],
                doc_id=r["doc_id"],
                namespace=r["namespace"],
                file=r["file"],
                ordinal=r["ordinal"],
                chunk=r["chunk"],
                code=r["code"],
                embedding_preview=self._preview(r["id"]) if has_vectors else [],
                created_at=r["created_at"],
            )
            for r in rows
        ]
        return EntryPage(entries=entries, total=self.count(namespace), page=page, limit=limit)

    def _preview(self, rowid: int) -> list[float]:
        row = self._conn.execute(
            f"SELECT vec_to_json(embedding) AS emb FROM {self._vec_table} WHERE rowid = ?",
            (rowid,),
        ).fetchone()
        if row is None or row["emb"] is None:
            return []
        return json.loads(row["emb"])[:_PREVIEW_DIMS]
