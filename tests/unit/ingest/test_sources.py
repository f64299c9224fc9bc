"""Tests for content sources (GitHub + local directory)."""

from __future__ import annotations

import io
import json
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from repohelp.ingest.sources import (
    FetchError,
    GitHubSource,
    LocalSource,
    has_extension,
    limit_files,
)


def _response(body: bytes) -> MagicMock:
    resp = MagicMock()
    resp.read.side_effect = lambda n=-1: body if n < 0 else body[:n]
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    return resp


def _tree(*items: tuple[str, str]) -> bytes:
    return json.dumps({"tree": [{"path": p, "type": t} for p, t in items]}).encode()


# ------------------------------------------------------------------
# helpers
# ------------------------------------------------------------------

@pytest.mark.parametrize("path,ok", [
    ("src/app.js", True),
    ("README.MD", True),
    ("lib/x.py", True),
    ("image.png", False),
    ("Makefile", False),
])
def test_has_extension(path, ok):
    assert has_extension(path, (".js", ".md", ".py")) is ok


def test_limit_files():
    files = ["a", "b", "c"]
    assert limit_files(files, None) == files
    assert limit_files(files, 2) == ["a", "b"]
    assert limit_files(files, 10) == files
    assert limit_files(files, 0) == []


def test_limit_files_negative_raises():
    with pytest.raises(ValueError):
        limit_files(["a"], -1)


# ------------------------------------------------------------------
# GitHubSource
# ------------------------------------------------------------------

def test_github_list_files_filters_blobs_and_extensions():
    body = _tree(("src", "tree"), ("src/app.js", "blob"), ("logo.png", "blob"), ("README.md", "blob"))
    with patch("repohelp.ingest.sources.urllib.request.urlopen", return_value=_response(body)) as m:
        files = GitHubSource(ref="dev", token="").list_files("acme/web")

    assert files == ["src/app.js", "README.md"]
    request = m.call_args[0][0]
    assert request.full_url == "https://api.github.com/repos/acme/web/git/trees/dev?recursive=1"
    assert m.call_args[1]["timeout"] == 30


def test_github_sends_token_as_bearer():
    with patch(
        "repohelp.ingest.sources.urllib.request.urlopen", return_value=_response(_tree())
    ) as m:
        GitHubSource(token="ghp_abc").list_files("acme/web")
    request = m.call_args[0][0]
    assert request.get_header("Authorization") == "Bearer ghp_abc"


def test_github_without_token_sends_no_auth(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    with patch(
        "repohelp.ingest.sources.urllib.request.urlopen", return_value=_response(_tree())
    ) as m:
        GitHubSource().list_files("acme/web")
    assert m.call_args[0][0].get_header("Authorization") is None


def test_github_get_file_content():
    with patch(
        "repohelp.ingest.sources.urllib.request.urlopen",
        return_value=_response(b"export const x = 1;"),
    ) as m:
        text = GitHubSource(token="").get_file_content("acme/web", "src/my file.js")

    assert text == "export const x = 1;"
    assert m.call_args[0][0].full_url == (
        "https://raw.githubusercontent.com/acme/web/main/src/my%20file.js"
    )


def test_github_http_error_raises_fetch_error_without_token():
    err = urllib.error.HTTPError("https://x", 404, "Not Found", {}, io.BytesIO(b""))
    with patch("repohelp.ingest.sources.urllib.request.urlopen", side_effect=err):
        with pytest.raises(FetchError, match="HTTP 404") as exc_info:
            GitHubSource(token="ghp_secret").list_files("acme/web")
    assert "ghp_secret" not in str(exc_info.value)


def test_github_network_error_raises_fetch_error():
    with patch(
        "repohelp.ingest.sources.urllib.request.urlopen",
        side_effect=urllib.error.URLError("unreachable"),
    ):
        with pytest.raises(FetchError, match="unreachable"):
            GitHubSource(token="").get_file_content("acme/web", "a.py")


def test_github_oversized_body_raises():
    big = b"x" * (5 * 1024 * 1024 + 1)
    with patch("repohelp.ingest.sources.urllib.request.urlopen", return_value=_response(big)):
        with pytest.raises(FetchError, match="5 MB"):
            GitHubSource(token="").get_file_content("acme/web", "a.py")


def test_github_malformed_listing_raises():
    with patch(
        "repohelp.ingest.sources.urllib.request.urlopen", return_value=_response(b"not json")
    ):
        with pytest.raises(FetchError, match="Malformed"):
            GitHubSource(token="").list_files("acme/web")


def test_github_bad_namespace_raises():
    with pytest.raises(FetchError, match="OWNER/REPO"):
        GitHubSource(token="").list_files("acme")


# ------------------------------------------------------------------
# LocalSource
# ------------------------------------------------------------------

@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.js").write_text("const a = 1;")
    (tmp_path / "src" / "style.css").write_text("body {}")
    (tmp_path / "README.md").write_text("# Hello")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.js").write_text("ignored")
    return tmp_path


def test_local_list_files(checkout):
    files = LocalSource(checkout).list_files("acme/web")
    assert files == ["README.md", "src/app.js"]


def test_local_custom_extensions_and_exclude(checkout):
    files = LocalSource(checkout, extensions=[".js"], exclude=["src"]).list_files("acme/web")
    assert files == ["node_modules/dep.js"]


def test_local_get_file_content(checkout):
    assert LocalSource(checkout).get_file_content("acme/web", "src/app.js") == "const a = 1;"


def test_local_missing_root_raises(tmp_path):
    with pytest.raises(FetchError, match="does not exist"):
        LocalSource(tmp_path / "missing").list_files("acme/web")


def test_local_path_escape_raises(checkout):
    with pytest.raises(FetchError, match="escapes"):
        LocalSource(checkout / "src").get_file_content("acme/web", "../README.md")


def test_local_missing_file_raises(checkout):
    with pytest.raises(FetchError, match="Cannot read"):
        LocalSource(checkout).get_file_content("acme/web", "nope.py")
