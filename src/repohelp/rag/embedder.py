"""Retrying embedding adapter: text → vector with bounded linear backoff.

Policy: up to ``max_attempts`` calls; before retry *k* (k = 1, 2, …) sleep
``k * delay`` seconds, so the default policy waits 1 s then 2 s. The adapter
knows nothing about files or chunks.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol

from repohelp.rag import llm_client

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], list[float]]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY = 1.0


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


class EmbeddingFailure(RuntimeError):
    """Raised when every embedding attempt failed.

    Attributes:
        attempts: Number of attempts made.
        last_error: The exception raised by the final attempt.
    """

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Embedding failed after {attempts} attempt(s): {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


class RetryingEmbedder:
    """Embed text through LiteLLM (or an injected callable) with retries.

    Args:
        model: LiteLLM embedding model string (provider/model format).
        max_attempts: Total attempts before giving up (>= 1).
        delay: Backoff unit in seconds.
        embed_fn: Optional replacement for the provider call (tests, fakes).
        sleep: Sleep function (injectable so tests don't wait).
    """

    def __init__(
        self,
        model: str = "openai/text-embedding-3-small",
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        delay: float = DEFAULT_DELAY,
        embed_fn: EmbedFn | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.model = model
        self.max_attempts = max_attempts
        self.delay = delay
        self._embed_fn = embed_fn or self._provider_embed
        self._sleep = sleep

    def embed(self, text: str) -> list[float]:
        """Return the embedding of *text*.

        Raises:
            EmbeddingFailure: After ``max_attempts`` consecutive failures.
        """
        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            if attempt > 1:
                self._sleep((attempt - 1) * self.delay)
            try:
                vector = self._embed_fn(text)
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Embedding attempt %d/%d failed: %s", attempt, self.max_attempts, exc
                )
                continue
            if attempt > 1:
                logger.debug("Embedding succeeded on attempt %d", attempt)
            return list(vector)

        assert last_error is not None
        raise EmbeddingFailure(self.max_attempts, last_error)

    def _provider_embed(self, text: str) -> list[float]:
        return llm_client.embed(self.model, text, num_retries=0)
