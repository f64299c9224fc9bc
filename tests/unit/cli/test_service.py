"""Tests for service wiring (build_service + RepoHelpService)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from repohelp.config import RepoHelpConfig
from repohelp.db.models import EntryPage
from repohelp.identity import NamespaceError
from repohelp.ingest.orchestrator import IngestionOrchestrator, IngestReport
from repohelp.ingest.sources import GitHubSource, LocalSource
from repohelp.rag.retriever import NoMatchError, QueryInputError
from repohelp.service import RepoHelpService, build_service


def _service(files=("a.js", "b.js", "c.js"), max_files=None, matches=None):
    source = MagicMock()
    source.list_files.return_value = list(files)
    orchestrator = MagicMock()
    orchestrator.ingest.return_value = IngestReport(stored=1)
    pipeline = MagicMock()
    pipeline.answer.return_value = matches if matches is not None else ["m"]
    store = MagicMock()
    return RepoHelpService(store, source, orchestrator, pipeline, max_files=max_files)


def test_ingest_normalises_and_limits():
    svc = _service(max_files=2)
    namespace, report = svc.ingest("acme/web/tree/main")

    assert namespace == "acme/web"
    assert report.stored == 1
    svc.source.list_files.assert_called_once_with("acme/web")
    args, kwargs = svc.orchestrator.ingest.call_args
    assert args == ("acme/web", ["a.js", "b.js"])


def test_ingest_invalid_repo():
    with pytest.raises(NamespaceError):
        _service().ingest("acme")


def test_analyze_runs_ingest_then_query():
    svc = _service()
    result = svc.analyze("acme/web", "Login", "broken")

    assert result.namespace == "acme/web"
    assert result.matches == ["m"]
    svc.pipeline.answer.assert_called_once_with("acme/web", "Login", "broken")


@pytest.mark.parametrize(
    "repo,title,body,missing",
    [("", "t", "b", "repo"), ("a/b", "", "b", "title"), ("a/b", "t", "  ", "body")],
)
def test_analyze_missing_fields(repo, title, body, missing):
    svc = _service()
    with pytest.raises(QueryInputError, match=missing):
        svc.analyze(repo, title, body)
    svc.orchestrator.ingest.assert_not_called()


def test_analyze_propagates_no_match():
    svc = _service()
    svc.pipeline.answer.side_effect = NoMatchError("acme/web")
    with pytest.raises(NoMatchError):
        svc.analyze("acme/web", "Login", "broken")


def test_list_documents_normalises_repo():
    svc = _service()
    svc.store.list_entries.return_value = EntryPage(entries=[], total=0, page=1, limit=20)
    svc.list_documents(page=2, limit=5, repo="acme/web/issues")
    svc.store.list_entries.assert_called_once_with(page=2, limit=5, namespace="acme/web")


def test_build_service_defaults_to_github(tmp_db):
    cfg = RepoHelpConfig()
    cfg.source.ref = "dev"
    svc = build_service(cfg, tmp_db)

    assert isinstance(svc.source, GitHubSource)
    assert svc.source.ref == "dev"
    assert isinstance(svc.orchestrator, IngestionOrchestrator)
    assert svc.max_files is None


def test_build_service_uses_given_source(tmp_db, tmp_path):
    source = LocalSource(tmp_path)
    svc = build_service(RepoHelpConfig(), tmp_db, source=source)
    assert svc.source is source
