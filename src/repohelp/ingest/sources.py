"""Content sources — file listings and raw file text for a namespace.

GitHubSource:
- Listing: GET {api_url}/repos/{owner}/{repo}/git/trees/{ref}?recursive=1,
  keeping blobs whose extension is whitelisted.
- Content: GET {raw_url}/{owner}/{repo}/{ref}/{path}.
- GITHUB_TOKEN (optional) is sent as a bearer token; never logged, never
  included in error messages.
- Timeout: 30 seconds. Max response body: 5 MB.

LocalSource: a checked-out directory on disk (namespace is only a label).
"""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path, PurePosixPath
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: tuple[str, ...] = (".js", ".ts", ".jsx", ".tsx", ".py", ".md")

_USER_AGENT = "repohelp/0.1"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_DEPTH = 10


class FetchError(RuntimeError):
    """Raised when a file listing or file content cannot be retrieved."""


class ContentSource(Protocol):
    """Where raw files come from."""

    def list_files(self, namespace: str) -> list[str]: ...

    def get_file_content(self, namespace: str, path: str) -> str: ...


def has_extension(path: str, extensions: tuple[str, ...] | list[str]) -> bool:
    suffix = PurePosixPath(path).suffix.lower()
    return suffix in {e.lower() for e in extensions}


def limit_files(files: list[str], max_files: int | None) -> list[str]:
    """Keep the first *max_files* paths (all of them when None)."""
    if max_files is None:
        return list(files)
    if max_files < 0:
        raise ValueError(f"max_files must be >= 0, got {max_files}")
    return list(files[:max_files])


# ------------------------------------------------------------------
# GitHub
# ------------------------------------------------------------------


class GitHubSource:
    """Read files of ``owner/repo`` namespaces from GitHub at a fixed ref."""

    def __init__(
        self,
        ref: str = "main",
        extensions: tuple[str, ...] | list[str] = DEFAULT_EXTENSIONS,
        api_url: str = "https://api.github.com",
        raw_url: str = "https://raw.githubusercontent.com",
        token: str | None = None,
    ) -> None:
        self.ref = ref
        self.extensions = tuple(extensions)
        self.api_url = api_url.rstrip("/")
        self.raw_url = raw_url.rstrip("/")
        self._token = token if token is not None else os.environ.get("GITHUB_TOKEN", "")

    def list_files(self, namespace: str) -> list[str]:
        """Return whitelisted blob paths of the repository tree, in tree order."""
        owner, repo = _split_namespace(namespace)
        url = (
            f"{self.api_url}/repos/{_quote(owner)}/{_quote(repo)}"
            f"/git/trees/{_quote(self.ref)}?recursive=1"
        )
        body = self._get(url, accept="application/vnd.github+json")
        try:
            tree = json.loads(body.decode("utf-8")).get("tree", [])
        except (ValueError, AttributeError) as exc:
            raise FetchError(f"Malformed tree listing for {namespace}@{self.ref}") from exc

        files = [
            item["path"]
            for item in tree
            if item.get("type") == "blob" and has_extension(item.get("path", ""), self.extensions)
        ]
        logger.info("Listed %d files for %s@%s", len(files), namespace, self.ref)
        return files

    def get_file_content(self, namespace: str, path: str) -> str:
        owner, repo = _split_namespace(namespace)
        quoted_path = "/".join(_quote(p) for p in path.split("/"))
        url = f"{self.raw_url}/{_quote(owner)}/{_quote(repo)}/{_quote(self.ref)}/{quoted_path}"
        return self._get(url).decode("utf-8", errors="replace")

    def _get(self, url: str, accept: str | None = None) -> bytes:
        """GET *url* with timeout and size cap. Raises FetchError on any failure."""
        headers = {"User-Agent": _USER_AGENT}
        if accept:
            headers["Accept"] = accept
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        request = urllib.request.Request(url, headers=headers)

        try:
            with urllib.request.urlopen(request, timeout=_TIMEOUT) as response:
                body = response.read(_MAX_BYTES + 1)
        except urllib.error.HTTPError as exc:
            raise FetchError(f"GET {url} failed: HTTP {exc.code}") from None
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise FetchError(f"GET {url} failed: {exc}") from None

        if len(body) > _MAX_BYTES:
            raise FetchError(
                f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit for '{url}'."
            )
        return body


def _split_namespace(namespace: str) -> tuple[str, str]:
    owner, _, repo = namespace.partition("/")
    if not owner or not repo:
        raise FetchError(f"Namespace '{namespace}' is not of the form OWNER/REPO")
    return owner, repo


def _quote(part: str) -> str:
    return urllib.parse.quote(part, safe="")


# ------------------------------------------------------------------
# Local directory
# ------------------------------------------------------------------


class LocalSource:
    """Read files from a directory on disk.

    Paths are reported relative to *root* in posix form, sorted per
    directory level; subdirectories are scanned up to 10 levels deep.
    """

    def __init__(
        self,
        root: Path | str,
        extensions: tuple[str, ...] | list[str] = DEFAULT_EXTENSIONS,
        exclude: list[str] | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.extensions = tuple(extensions)
        self.exclude = list(exclude or [".git", "node_modules", "__pycache__"])

    def list_files(self, namespace: str) -> list[str]:
        if not self.root.is_dir():
            raise FetchError(f"Directory does not exist: {self.root}")
        files = [
            p.relative_to(self.root).as_posix() for p in self._scan(self.root, depth=0)
        ]
        logger.info("Listed %d files for %s under %s", len(files), namespace, self.root)
        return files

    def get_file_content(self, namespace: str, path: str) -> str:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise FetchError(f"Path escapes source root: {path}")
        try:
            return target.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise FetchError(f"Cannot read {path}: {exc}") from exc

    def _scan(self, directory: Path, depth: int) -> list[Path]:
        if depth > _MAX_DEPTH:
            return []
        try:
            entries = sorted(directory.iterdir())
        except PermissionError:
            return []
        files: list[Path] = []
        for entry in entries:
            if any(fnmatch.fnmatch(entry.name, pat) for pat in self.exclude):
                continue
            if entry.is_file() and has_extension(entry.name, self.extensions):
                files.append(entry)
            elif entry.is_dir():
                files.extend(self._scan(entry, depth + 1))
        return files
