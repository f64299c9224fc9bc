"""Service wiring — builds the pipelines from config and exposes the two
caller-facing operations: analyze (ingest + search) and list_documents.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from typing import Callable

from repohelp.config import RepoHelpConfig
from repohelp.db.models import EntryPage, MatchResult
from repohelp.db.repository import Repository
from repohelp.identity import normalize_namespace
from repohelp.ingest.orchestrator import IngestionOrchestrator, IngestReport
from repohelp.ingest.sources import ContentSource, GitHubSource, limit_files
from repohelp.ingest.summarizer import CodeSummarizer
from repohelp.rag.embedder import RetryingEmbedder
from repohelp.rag.retriever import QueryInputError, QueryPipeline, RetrieverConfig

logger = logging.getLogger(__name__)


@dataclass
class AnalyzeResult:
    namespace: str
    report: IngestReport
    matches: list[MatchResult] = field(default_factory=list)


class RepoHelpService:
    """Caller-facing operations over one database.

    Args:
        store: Store adapter (owns persisted entries).
        source: Content source used by analyze().
        orchestrator: Ingestion orchestrator.
        pipeline: Query pipeline.
        max_files: Only the first N listed files are ingested (None = all).
    """

    def __init__(
        self,
        store: Repository,
        source: ContentSource,
        orchestrator: IngestionOrchestrator,
        pipeline: QueryPipeline,
        max_files: int | None = None,
    ) -> None:
        self.store = store
        self.source = source
        self.orchestrator = orchestrator
        self.pipeline = pipeline
        self.max_files = max_files

    def ingest(
        self,
        repo: str,
        cancel: threading.Event | None = None,
        on_file: Callable[[str, str], None] | None = None,
    ) -> tuple[str, IngestReport]:
        """List, limit and ingest the files of *repo*. Returns (namespace, report)."""
        namespace = normalize_namespace(repo)
        files = limit_files(self.source.list_files(namespace), self.max_files)
        report = self.orchestrator.ingest(namespace, files, cancel=cancel, on_file=on_file)
        return namespace, report

    def search(self, repo: str, title: str, body: str = "") -> list[MatchResult]:
        return self.pipeline.answer(normalize_namespace(repo), title, body)

    def analyze(
        self,
        repo: str,
        title: str,
        body: str,
        on_file: Callable[[str, str], None] | None = None,
    ) -> AnalyzeResult:
        """Index *repo* incrementally, then return the chunks most relevant to the issue.

        Raises:
            QueryInputError: If repo, title or body is missing.
            NoMatchError: If nothing in the namespace matches.
        """
        missing = [
            name
            for name, value in (("repo", repo), ("title", title), ("body", body))
            if not (value or "").strip()
        ]
        if missing:
            raise QueryInputError(f"Missing required fields: {', '.join(missing)}")

        namespace, report = self.ingest(repo, on_file=on_file)
        matches = self.pipeline.answer(namespace, title, body)
        return AnalyzeResult(namespace=namespace, report=report, matches=matches)

    def list_documents(
        self, page: int = 1, limit: int = 20, repo: str | None = None
    ) -> EntryPage:
        namespace = normalize_namespace(repo) if repo else None
        return self.store.list_entries(page=page, limit=limit, namespace=namespace)


def build_service(
    cfg: RepoHelpConfig,
    conn: sqlite3.Connection,
    source: ContentSource | None = None,
) -> RepoHelpService:
    """Construct every adapter from *cfg*. *source* defaults to GitHub."""
    store = Repository(conn, cfg.embedding.model)
    if source is None:
        source = GitHubSource(
            ref=cfg.source.ref,
            extensions=cfg.source.extensions,
            api_url=cfg.source.api_url,
            raw_url=cfg.source.raw_url,
        )
    embedder = RetryingEmbedder(
        model=cfg.embedding.model,
        max_attempts=cfg.embedding.max_attempts,
        delay=cfg.embedding.retry_delay,
    )
    summarizer = CodeSummarizer(model=cfg.summary.model, max_chars=cfg.summary.max_chars)
    orchestrator = IngestionOrchestrator(
        source=source,
        summarizer=summarizer,
        embedder=embedder,
        store=store,
        concurrency=cfg.ingest.concurrency,
    )
    pipeline = QueryPipeline(
        embedder=embedder,
        store=store,
        config=RetrieverConfig(
            top_k=cfg.query.top_k,
            expand=cfg.query.expand,
            expansion_model=cfg.query.expansion_model,
        ),
    )
    return RepoHelpService(
        store=store,
        source=source,
        orchestrator=orchestrator,
        pipeline=pipeline,
        max_files=cfg.ingest.max_files,
    )
