"""Ingestion orchestrator — bounded-concurrency, dedup-aware indexing of files.

Per run:
  1. Snapshot the namespace's existing docIds once.
  2. Fan out one task per file to a ThreadPoolExecutor (max C in flight):
     skip → fetch → summarize → embed each new chunk → IndexEntry.
  3. Fan in on the calling thread (as_completed); it is the only writer of
     the accumulated results.
  4. After every task has settled, write all entries in one batch.

Unit failures (a file's fetch/summary, a chunk's embedding) are logged and
recorded in the report; they never abort sibling tasks. Only an empty file
list or a failing batch write propagates.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Protocol

from repohelp.db.models import IndexEntry
from repohelp.db.repository import StoreAdapter, is_valid_vector
from repohelp.identity import base_id, file_prefix, identify
from repohelp.ingest.resolver import list_existing_ids
from repohelp.ingest.sources import ContentSource
from repohelp.ingest.summarizer import SummaryChunk
from repohelp.rag.embedder import Embedder

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 10

STATUS_INDEXED = "indexed"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"


class IngestInputError(ValueError):
    """Raised before any work starts when the ingest request is unusable."""


class Summarizer(Protocol):
    def summarize(self, path: str, raw_text: str) -> list[SummaryChunk]: ...


@dataclass
class FileOutcome:
    """Result of one per-file task."""

    path: str
    status: str
    entries: list[IndexEntry] = field(default_factory=list)
    error: str | None = None


@dataclass
class IngestReport:
    """Summary of an ingest run.

    Attributes:
        stored: Entries newly written by the store in this run.
        skipped: Files skipped because they were already indexed.
        failed: Files with a fetch, summary or chunk embedding failure.
        cancelled: Files never started because cancellation was requested.
        prepared: Entries handed to the store (>= stored).
    """

    stored: int = 0
    skipped: int = 0
    failed: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    prepared: int = 0


def embedding_input(path: str, chunk: SummaryChunk) -> str:
    """Text sent to the embedder for *chunk*: a file context line + the chunk text."""
    return f"File: {path}\n\n{chunk.text}"


class IngestionOrchestrator:
    """Index files of a namespace into the store.

    Args:
        source: Content source providing raw file text.
        summarizer: Turns raw text into ordered summary chunks.
        embedder: Text → vector (retrying).
        store: Store adapter receiving the final batch.
        concurrency: Maximum number of per-file tasks in flight.
    """

    def __init__(
        self,
        source: ContentSource,
        summarizer: Summarizer,
        embedder: Embedder,
        store: StoreAdapter,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._source = source
        self._summarizer = summarizer
        self._embedder = embedder
        self._store = store
        self._concurrency = concurrency

    def ingest(
        self,
        namespace: str,
        files: list[str],
        cancel: threading.Event | None = None,
        on_file: Callable[[str, str], None] | None = None,
    ) -> IngestReport:
        """Index *files* of *namespace* and return an :class:`IngestReport`.

        Args:
            namespace: Corpus the files belong to.
            files: Paths to index. Duplicates are processed once.
            cancel: When set, tasks that have not started yet are cancelled;
                in-flight tasks finish normally.
            on_file: Called as ``on_file(path, status)`` on the calling
                thread each time a file task settles.

        Raises:
            IngestInputError: If *namespace* or *files* is empty.
        """
        if not namespace:
            raise IngestInputError("namespace is required")
        if not files:
            raise IngestInputError(f"No files to ingest for {namespace}")

        paths = list(dict.fromkeys(files))
        existing = frozenset(list_existing_ids(self._store, namespace))
        indexed_files = frozenset(base_id(doc_id) for doc_id in existing)

        report = IngestReport()
        entries: list[IndexEntry] = []

        logger.info(
            "Ingesting %d files for %s (concurrency=%d)",
            len(paths), namespace, self._concurrency,
        )
        with ThreadPoolExecutor(
            max_workers=self._concurrency, thread_name_prefix="repohelp-ingest"
        ) as pool:
            futures = {
                pool.submit(
                    self._process_file, namespace, path, existing, indexed_files, cancel
                ): path
                for path in paths
            }
            for future in as_completed(futures):
                path = futures[future]
                try:
                    outcome = future.result()
                except Exception as exc:
                    logger.exception("Unexpected error while processing %s", path)
                    outcome = FileOutcome(path, STATUS_FAILED, error=str(exc))

                entries.extend(outcome.entries)
                if outcome.status == STATUS_SKIPPED:
                    report.skipped += 1
                elif outcome.status == STATUS_FAILED:
                    report.failed.append(path)
                elif outcome.status == STATUS_CANCELLED:
                    report.cancelled.append(path)
                if on_file is not None:
                    on_file(path, outcome.status)

        report.failed.sort()
        report.cancelled.sort()
        report.prepared = len(entries)
        if entries:
            logger.info("Storing %d new entries for %s", len(entries), namespace)
            report.stored = self._store.add_batch(entries)
        else:
            logger.info("No new documents to store for %s", namespace)

        logger.info(
            "Ingest finished for %s: stored=%d skipped=%d failed=%d cancelled=%d",
            namespace, report.stored, report.skipped, len(report.failed), len(report.cancelled),
        )
        return report

    # ------------------------------------------------------------------
    # Per-file task (runs on a pool thread)
    # ------------------------------------------------------------------

    def _process_file(
        self,
        namespace: str,
        path: str,
        existing: frozenset[str],
        indexed_files: frozenset[str],
        cancel: threading.Event | None,
    ) -> FileOutcome:
        if cancel is not None and cancel.is_set():
            return FileOutcome(path, STATUS_CANCELLED)

        if file_prefix(namespace, path) in indexed_files:
            logger.info("Skipping cached document for %s", path)
            return FileOutcome(path, STATUS_SKIPPED)

        try:
            raw = self._source.get_file_content(namespace, path)
            chunks = self._summarizer.summarize(path, raw)
        except Exception as exc:
            logger.warning("Failed to process %s: %s", path, exc)
            return FileOutcome(path, STATUS_FAILED, error=str(exc))

        entries: list[IndexEntry] = []
        errors: list[str] = []
        for chunk in chunks:
            ordinal = chunk.ordinal
            doc_id = identify(namespace, path, ordinal)
            if doc_id in existing:
                continue
            try:
                vector = self._embedder.embed(embedding_input(path, chunk))
            except Exception as exc:
                logger.warning("Embedding failed for %s: %s", doc_id, exc)
                errors.append(f"{doc_id}: {exc}")
                continue
            if not is_valid_vector(vector):
                logger.warning("Empty or malformed embedding for %s", doc_id)
                errors.append(f"{doc_id}: malformed embedding")
                continue
            entries.append(
                IndexEntry(
                    doc_id=doc_id,
                    namespace=namespace,
                    file=path,
                    ordinal=ordinal,
                    chunk=chunk.text,
                    code=chunk.code,
                    embedding=list(vector),
                )
            )

        if errors:
            return FileOutcome(path, STATUS_FAILED, entries, error="; ".join(errors))
        return FileOutcome(path, STATUS_INDEXED, entries)
