"""repohelp ingest pipeline — sources, summarizer, resolver, orchestrator."""

from repohelp.ingest.orchestrator import IngestInputError, IngestionOrchestrator, IngestReport
from repohelp.ingest.resolver import list_existing_ids
from repohelp.ingest.sources import FetchError, GitHubSource, LocalSource
from repohelp.ingest.summarizer import CodeSummarizer, SummarizationError, SummaryChunk

__all__ = [
    "CodeSummarizer",
    "FetchError",
    "GitHubSource",
    "IngestInputError",
    "IngestReport",
    "IngestionOrchestrator",
    "LocalSource",
    "SummarizationError",
    "SummaryChunk",
    "list_existing_ids",
]
