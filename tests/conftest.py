"""Shared pytest fixtures for github-docs-mirror tests."""

from __future__ import annotations

import hashlib
from typing import Any

import pytest
from dotenv import load_dotenv

from github_docs_mirror.config import Config
from github_docs_mirror.config_schema import SourceConfig
from github_docs_mirror.core.client import (
    CommitInfo,
    ComparedFile,
    FetchResult,
    RemoteEntry,
)
from github_docs_mirror.errors import TransportError
from github_docs_mirror.sync.metadata import MetadataStore
from github_docs_mirror.sync.store import ContentStore, StoreHost

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require the live GitHub API",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring the live GitHub API"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------------
# Fake GitHub client
# ---------------------------------------------------------------------------


def _etag(content: bytes) -> str:
    return '"' + hashlib.sha256(content).hexdigest()[:16] + '"'


class FakeGitHubClient:
    """In-memory stand-in for ``GitHubClient``.

    Repositories are dicts of path -> bytes.  Every blob carries an ETag
    derived from its content; a matching ``If-None-Match`` gets a 304.
    """

    def __init__(self) -> None:
        self.repos: dict[tuple[str, str], dict[str, bytes]] = {}
        self.commits: dict[tuple[str, str], CommitInfo] = {}
        self.compared: dict[tuple[str, str], list[ComparedFile]] = {}
        self.failing_paths: dict[str, Exception] = {}
        self.failing_repos: dict[tuple[str, str], Exception] = {}
        self.failing_listings: dict[str, Exception] = {}
        self.list_calls: list[tuple[str, str, str, str]] = []
        self.fetch_calls: list[tuple[str, dict[str, str]]] = []
        self.commit_calls: list[tuple[str, str, str, str | None]] = []

    # -- setup helpers -----------------------------------------------------

    def add_file(
        self, owner: str, repo: str, path: str, content: str | bytes
    ) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self.repos.setdefault((owner, repo), {})[path] = data

    def remove_file(self, owner: str, repo: str, path: str) -> None:
        del self.repos[(owner, repo)][path]

    def set_commit(
        self, owner: str, repo: str, sha: str, message: str = "Update docs"
    ) -> None:
        self.commits[(owner, repo)] = CommitInfo(
            sha=sha, date="2026-01-01T00:00:00Z", message=message
        )

    # -- GitHubClient surface ---------------------------------------------

    def _files(self, owner: str, repo: str) -> dict[str, bytes]:
        if (owner, repo) in self.failing_repos:
            raise self.failing_repos[(owner, repo)]
        if (owner, repo) not in self.repos:
            raise TransportError(
                f"{owner}/{repo} not found", status=404, url=f"{owner}/{repo}"
            )
        return self.repos[(owner, repo)]

    def list_children(
        self, owner: str, repo: str, ref: str, path: str
    ) -> list[RemoteEntry]:
        self.list_calls.append((owner, repo, ref, path))
        files = self._files(owner, repo)
        path = path.strip("/")
        if path in self.failing_listings:
            raise self.failing_listings[path]
        if path in files:
            return [RemoteEntry(path=path, type="file", size=len(files[path]))]

        prefix = f"{path}/" if path else ""
        children: dict[str, RemoteEntry] = {}
        for file_path, data in sorted(files.items()):
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix) :]
            head, sep, _ = rest.partition("/")
            child = prefix + head
            if sep:
                children.setdefault(child, RemoteEntry(path=child, type="dir"))
            else:
                children[child] = RemoteEntry(
                    path=child, type="file", size=len(data)
                )
        if path and not children:
            raise TransportError(
                f"{path} not found", status=404, url=f"{owner}/{repo}/{path}"
            )
        return list(children.values())

    def fetch_blob(
        self,
        owner: str,
        repo: str,
        ref: str,
        path: str,
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        headers = dict(headers or {})
        self.fetch_calls.append((path, headers))
        if path in self.failing_paths:
            raise self.failing_paths[path]
        files = self._files(owner, repo)
        if path not in files:
            raise TransportError(f"{path} not found", status=404, url=path)
        content = files[path]
        etag = _etag(content)
        if headers.get("If-None-Match") == etag:
            return FetchResult(status=304, headers={"etag": etag})
        return FetchResult(status=200, content=content, headers={"etag": etag})

    def latest_commit(
        self, owner: str, repo: str, ref: str, path: str | None = None
    ) -> CommitInfo:
        self.commit_calls.append((owner, repo, ref, path))
        self._files(owner, repo)
        if (owner, repo) not in self.commits:
            raise TransportError(f"No commits found for {owner}/{repo}@{ref}")
        return self.commits[(owner, repo)]

    def compare(
        self, owner: str, repo: str, base: str, head: str
    ) -> list[ComparedFile]:
        return list(self.compared.get((owner, repo), []))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_config():
    """Create a Config instance pointing at the public API."""
    return Config(
        api_url="https://api.github.com",
        token="ghp_testtoken",
        timeout=5.0,
        delay_between_sources=0.0,
    )


@pytest.fixture
def fake_client():
    return FakeGitHubClient()


@pytest.fixture
def make_source():
    """Factory for ``SourceConfig`` with sensible test defaults."""

    def _make(**overrides: Any) -> SourceConfig:
        defaults: dict[str, Any] = {
            "owner": "acme",
            "repo": "widgets",
            "ref": "main",
            "path": "docs",
            "base_path": "src/content/docs/widgets",
        }
        defaults.update(overrides)
        return SourceConfig(**defaults)

    return _make


@pytest.fixture
def metadata():
    return MetadataStore()


@pytest.fixture
def host(tmp_path):
    return StoreHost(store=ContentStore(), project_root=tmp_path)
