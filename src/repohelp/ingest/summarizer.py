"""Code summarizer — per-file structured summaries via LiteLLM.

Output contract: an ordered list of :class:`SummaryChunk` records, the
file-level summary first, then one record per discovered unit (function,
class, component). The delimited text the LLM is asked to produce is just
one serialization of that contract; :func:`parse_summary` reads it back:

    <file-level summary>
    === CHUNK ===
    <unit summary>
    --- CODE ---
    <code excerpt for that unit>

No chunk delimiter → the whole output is one file-level chunk.
No code delimiter inside a chunk → no code excerpt is attached.

Each chunk keeps the ordinal of its position in the output: text before the
first delimiter is ordinal 0, the N-th delimited section is ordinal N. Empty
sections are dropped without renumbering the ones after them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from repohelp.rag import llm_client

logger = logging.getLogger(__name__)

CHUNK_DELIMITER = "=== CHUNK ==="
CODE_DELIMITER = "--- CODE ---"

_CHUNK_SPLIT_RE = re.compile(r"^[ \t]*===[ \t]*CHUNK[ \t]*===[ \t]*$", re.MULTILINE)
_CODE_SPLIT_RE = re.compile(r"^[ \t]*---[ \t]*CODE[ \t]*---[ \t]*$", re.MULTILINE)
_FENCE_RE = re.compile(r"^```[\w+-]*\n(.*?)\n?```$", re.DOTALL)

_SUMMARY_PROMPT = """\
You are an expert software assistant. Read the source file `{path}` below.

First write a summary of the whole file: what feature(s) it implements, what \
the user does with it and what the backend does with it, and which page or \
module it belongs to if obvious.

Then, for each function, class or component in the file, write a line \
containing exactly `{chunk_delimiter}`, followed by a short summary of that \
unit, then a line containing exactly `{code_delimiter}`, followed by the \
unit's code (or its most relevant excerpt).

Respond in bullet points. Do not use the delimiter lines for anything else.

```
{file_text}
```
"""

_DEFAULT_MODEL = "openai/gpt-4o-mini"
_DEFAULT_MAX_CHARS = 12_000
_DEFAULT_MAX_TOKENS = 1_500


class SummarizationError(RuntimeError):
    """Raised when a file could not be summarized (provider error or empty output)."""


@dataclass(frozen=True)
class SummaryChunk:
    """One independent chunk of a file summary."""

    text: str
    code: str | None = None
    ordinal: int = 0


def parse_summary(text: str) -> list[SummaryChunk]:
    """Parse delimiter-serialized summary text into ordered chunks.

    Empty chunks are dropped. A missing file-level summary leaves slot 0
    empty rather than promoting the first unit into it.
    """
    chunks: list[SummaryChunk] = []
    for ordinal, part in enumerate(_CHUNK_SPLIT_RE.split(text or "")):
        pieces = _CODE_SPLIT_RE.split(part, maxsplit=1)
        narrative = pieces[0].strip()
        code = _strip_fence(pieces[1].strip()) if len(pieces) > 1 else None
        if not narrative and not code:
            continue
        chunks.append(
            SummaryChunk(text=narrative or (code or ""), code=code or None, ordinal=ordinal)
        )
    return chunks


def _strip_fence(code: str) -> str:
    match = _FENCE_RE.match(code)
    return match.group(1).strip() if match else code


class CodeSummarizer:
    """Summarize a source file into structured chunks.

    Args:
        model:      LiteLLM model string for summary generation.
        max_chars:  Raw file text beyond this many characters is not sent.
        max_tokens: Maximum tokens in the generated summary.
    """

    def __init__(
        self,
        model: str = _DEFAULT_MODEL,
        max_chars: int = _DEFAULT_MAX_CHARS,
        max_tokens: int = _DEFAULT_MAX_TOKENS,
    ) -> None:
        self._model = model
        self._max_chars = max_chars
        self._max_tokens = max_tokens

    def summarize(self, path: str, raw_text: str) -> list[SummaryChunk]:
        """Return the structured summary of *raw_text*.

        Raises:
            SummarizationError: If the provider call fails or yields no chunks.
        """
        prompt = _SUMMARY_PROMPT.format(
            path=path,
            chunk_delimiter=CHUNK_DELIMITER,
            code_delimiter=CODE_DELIMITER,
            file_text=raw_text[: self._max_chars],
        )
        try:
            text = llm_client.complete(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self._max_tokens,
                temperature=0.0,
            )
        except Exception as exc:
            raise SummarizationError(f"Summary generation failed for {path}: {exc}") from exc

        chunks = parse_summary(text)
        if not chunks:
            raise SummarizationError(f"Empty summary returned for {path}")
        logger.debug("Summarized %s into %d chunk(s)", path, len(chunks))
        return chunks
