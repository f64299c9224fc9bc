"""Domain models for the repohelp store layer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class IndexEntry:
    """A chunk ready for storage: text + metadata + embedding vector."""

    doc_id: str
    namespace: str
    file: str
    ordinal: int
    chunk: str
    embedding: list[float]
    code: str | None = None


@dataclass(frozen=True)
class MatchResult:
    """One hit of a namespace-scoped similarity search.

    Attributes:
        file: Source path of the matched chunk.
        match: The stored chunk text.
        code: Optional code excerpt attached to the chunk.
        doc_id: Identifier of the matched slot.
        namespace: Namespace the hit belongs to (always the query's).
        distance: Cosine distance to the query vector (lower = closer).
    """

    file: str
    match: str
    code: str | None
    doc_id: str
    namespace: str
    distance: float


@dataclass(frozen=True)
class StoredEntry:
    """Inspection view of a persisted entry (see Repository.list_entries)."""

    id: int
    doc_id: str
    namespace: str
    file: str
    ordinal: int
    chunk: str
    code: str | None
    embedding_preview: list[float] = field(default_factory=list)
    created_at: str | None = None


@dataclass
class EntryPage:
    entries: list[StoredEntry]
    total: int
    page: int
    limit: int
