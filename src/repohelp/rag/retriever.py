"""Query pipeline: issue text → (expanded) query → embedding → scoped KNN.

Query expansion:
  - litellm.completion() rewrites "title\\nbody" into a richer description of
    the code that would be involved (which files, features, functions).
  - Expansion failure is non-fatal — the raw concatenation is embedded.
  - The expanded text is always embedded with the same embedding model as
    ingest.

An empty result is escalated to NoMatchError: callers need "nothing
relevant" to be distinct from a system error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from repohelp.db.models import MatchResult
from repohelp.db.repository import StoreAdapter
from repohelp.rag import llm_client
from repohelp.rag.embedder import Embedder

logger = logging.getLogger(__name__)

_EXPANSION_PROMPT = (
    "You are a senior engineer triaging an issue against a code repository. "
    "Rewrite the issue below as a short description (max 120 words) of the "
    "code that is most likely involved: features, pages, modules, functions "
    "and behaviour. Do not ask for clarification."
)


class NoMatchError(LookupError):
    """Raised when a similarity search returns nothing for the namespace."""

    def __init__(self, namespace: str) -> None:
        super().__init__(f"No matching documents found for '{namespace}'")
        self.namespace = namespace


class QueryInputError(ValueError):
    """Raised when a query is missing required fields."""


@dataclass
class RetrieverConfig:
    """Configuration for the query pipeline.

    Attributes:
        top_k: Maximum number of matches returned.
        expand: Whether to expand the query with an LLM before embedding.
        expansion_model: LiteLLM model used for query expansion.
    """

    top_k: int = 3
    expand: bool = True
    expansion_model: str = "openai/gpt-4o-mini"


def build_query_text(title: str, body: str) -> str:
    """Concatenate issue title and body into one query string."""
    return f"{title.strip()}\n{(body or '').strip()}".strip()


def expand_query(query: str, model: str) -> str:
    """Ask *model* for a richer description of *query*. Raises on provider error."""
    return llm_client.complete(
        model=model,
        messages=[
            {"role": "system", "content": _EXPANSION_PROMPT},
            {"role": "user", "content": query},
        ],
        max_tokens=200,
        temperature=0.0,
    ).strip()


class QueryPipeline:
    """Answer a (namespace, title, body) query with ranked matches.

    Args:
        embedder: Text → vector adapter (same model as ingest).
        store: Store adapter used for the scoped similarity search.
        config: Pipeline configuration.
        expander: Optional override for the expansion call (query → text).
    """

    def __init__(
        self,
        embedder: Embedder,
        store: StoreAdapter,
        config: RetrieverConfig | None = None,
        expander: Callable[[str], str] | None = None,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._config = config or RetrieverConfig()
        if expander is not None:
            self._expander: Callable[[str], str] | None = expander
        elif self._config.expand:
            self._expander = lambda q: expand_query(q, self._config.expansion_model)
        else:
            self._expander = None

    def answer(self, namespace: str, title: str, body: str = "") -> list[MatchResult]:
        """Return up to ``top_k`` matches in *namespace*, closest first.

        Raises:
            QueryInputError: If *namespace* or *title* is empty.
            NoMatchError: If the namespace holds nothing to match.
            EmbeddingFailure: If the query itself cannot be embedded.
        """
        missing = [
            name
            for name, value in (("namespace", namespace), ("title", title))
            if not (value or "").strip()
        ]
        if missing:
            raise QueryInputError(f"Missing required fields: {', '.join(missing)}")

        query = build_query_text(title, body)
        embed_text = self._build_embed_query(query)
        vector = self._embedder.embed(embed_text)
        results = self._store.query_similar(vector, namespace, self._config.top_k)

        if not results:
            raise NoMatchError(namespace)
        logger.info("Found %d matches for %s", len(results), namespace)
        return results

    def _build_embed_query(self, query: str) -> str:
        """Return the text to embed: the expansion, or *query* if expansion fails."""
        if self._expander is None:
            return query
        try:
            expanded = self._expander(query)
        except Exception as exc:
            logger.warning("Query expansion failed, using raw query: %s", exc)
            return query
        return expanded.strip() or query
