"""Chunk identity scheme + namespace normalisation.

docId layout:
  ordinal 0   → "{namespace}::{path}"              (whole-file summary slot)
  ordinal N>0 → "{namespace}::{path}::unit-{N}"    (N-th unit summary slot)

Identity is derived from the slot, never from content: re-deriving a docId
from the same (namespace, path, ordinal) always yields the same string.
``%`` and ``:`` inside the namespace or path are percent-encoded, so the
only ``::`` in a docId is a separator and no two slots share an id.
"""

from __future__ import annotations

import re

_SEP = "::"
_UNIT_TAG = "unit-"
_UNIT_RE = re.compile(rf"{_SEP}{_UNIT_TAG}\d+$")


class NamespaceError(ValueError):
    """Raised when a repository slug cannot be turned into a namespace."""


def _escape(part: str) -> str:
    return part.replace("%", "%25").replace(":", "%3A")


def identify(namespace: str, path: str, ordinal: int = 0) -> str:
    """Return the docId for chunk *ordinal* of *path* in *namespace*.

    Raises:
        ValueError: If *ordinal* is negative.
    """
    if ordinal < 0:
        raise ValueError(f"ordinal must be >= 0, got {ordinal}")
    base = f"{_escape(namespace)}{_SEP}{_escape(path)}"
    if ordinal == 0:
        return base
    return f"{base}{_SEP}{_UNIT_TAG}{ordinal}"


def file_prefix(namespace: str, path: str) -> str:
    """Identity prefix shared by every chunk of *path*."""
    return identify(namespace, path, 0)


def base_id(doc_id: str) -> str:
    """Strip the unit tag from *doc_id*, leaving the file prefix.

    Only a trailing ``::unit-N`` is removed, so ``a.py`` never claims
    ``a.py.bak`` or ``a.py::unit-x``.
    """
    return _UNIT_RE.sub("", doc_id)


def normalize_namespace(slug: str) -> str:
    """Reduce a repository slug to ``owner/repo``.

    Examples:
        "acme/widgets"                -> "acme/widgets"
        " acme/widgets/tree/main "    -> "acme/widgets"

    Raises:
        NamespaceError: If the slug has fewer than two non-empty segments.
    """
    parts = [p for p in (slug or "").strip().split("/")]
    if len(parts) < 2 or not parts[0].strip() or not parts[1].strip():
        raise NamespaceError(
            f"Invalid repository '{slug}'. Expected the form OWNER/REPO."
        )
    return f"{parts[0].strip()}/{parts[1].strip()}"
