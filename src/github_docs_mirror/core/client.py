import logging
import threading
from typing import Any
from urllib.parse import quote, urlparse

import requests
from pydantic import BaseModel

from ..config import Config
from ..errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

_API_VERSION = "2022-11-28"
_RAW_MEDIA_TYPE = "application/vnd.github.raw+json"


class RemoteEntry(BaseModel):
    """One node returned by a directory listing."""

    path: str
    type: str  # "file" | "dir" (symlink/submodule are passed through)
    sha: str | None = None
    size: int = 0
    download_url: str | None = None

    model_config = {"frozen": True}

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


class FetchResult(BaseModel):
    """Outcome of a (possibly conditional) content fetch.

    ``headers`` keys are lower-cased.
    """

    status: int
    content: bytes = b""
    headers: dict[str, str] = {}

    model_config = {"frozen": True}

    @property
    def not_modified(self) -> bool:
        return self.status == 304


class CommitInfo(BaseModel):
    sha: str
    date: str | None = None
    message: str = ""

    model_config = {"frozen": True}


class ComparedFile(BaseModel):
    filename: str
    status: str  # added | modified | removed | renamed | ...
    previous_filename: str | None = None

    model_config = {"frozen": True}


class GitHubClient:
    """Thin REST client for the parts of the GitHub API the mirror needs.

    Sessions are kept per thread so a client instance can be shared by
    callers running on worker threads.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self.api_url = self._get_api_url()

    @property
    def session(self) -> requests.Session:
        """Current thread's session."""
        return self._get_session()

    def _get_api_url(self) -> str:
        parsed = urlparse(self.config.api_url or "")
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ConfigurationError(
                f"Invalid GitHub API URL: {self.config.api_url!r}"
            )
        return self.config.api_url.rstrip("/")

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": _API_VERSION,
                "User-Agent": "github-docs-mirror",
            }
        )
        if self.config.token:
            session.headers["Authorization"] = f"Bearer {self.config.token}"
        return session

    def _repo_url(self, owner: str, repo: str, *parts: str) -> str:
        if not owner or not repo:
            raise ConfigurationError(
                f"Invalid repository coordinates: {owner!r}/{repo!r}"
            )
        base = f"{self.api_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
        return "/".join([base, *parts])

    def _request(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        allow_not_modified: bool = False,
    ) -> requests.Response:
        """GET *url* and map failures onto ``TransportError``."""
        session = self._get_session()
        try:
            response = session.get(
                url,
                params=params,
                headers=headers,
                timeout=(10, self.config.timeout),
            )
        except requests.RequestException as exc:
            raise TransportError(
                f"Request to {url} failed: {exc}", url=url
            ) from exc

        if response.status_code == 304 and allow_not_modified:
            return response
        if not response.ok:
            raise TransportError(
                f"GET {url} returned HTTP {response.status_code}",
                status=response.status_code,
                url=url,
            )
        return response

    # ------------------------------------------------------------------
    # Repository contents
    # ------------------------------------------------------------------

    def list_children(
        self, owner: str, repo: str, ref: str, path: str
    ) -> list[RemoteEntry]:
        """List the children of *path* at *ref*.

        When *path* names a file the API returns a single object; it is
        returned as a one-element list.

        Raises:
            TransportError: On HTTP or connection failure (404 included).
        """
        url = self._repo_url(owner, repo, "contents", quote(path.strip("/")))
        data = self._request(url, params={"ref": ref}).json()
        items = data if isinstance(data, list) else [data]
        return [
            RemoteEntry(
                path=item["path"],
                type=item.get("type", "file"),
                sha=item.get("sha"),
                size=item.get("size") or 0,
                download_url=item.get("download_url"),
            )
            for item in items
        ]

    def fetch_blob(
        self,
        owner: str,
        repo: str,
        ref: str,
        path: str,
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        """Fetch raw file content, honouring conditional request headers.

        Returns:
            ``FetchResult`` with ``status`` 200 and the content, or 304 with
            empty content when the validators still match.
        """
        url = self._repo_url(owner, repo, "contents", quote(path.strip("/")))
        request_headers = {"Accept": _RAW_MEDIA_TYPE}
        request_headers.update(headers or {})
        response = self._request(
            url,
            params={"ref": ref},
            headers=request_headers,
            allow_not_modified=True,
        )
        return FetchResult(
            status=response.status_code,
            content=b"" if response.status_code == 304 else response.content,
            headers={k.lower(): v for k, v in response.headers.items()},
        )

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def latest_commit(
        self, owner: str, repo: str, ref: str, path: str | None = None
    ) -> CommitInfo:
        """Return the newest commit reachable from *ref*.

        Raises:
            TransportError: If the request fails or no commit exists.
        """
        url = self._repo_url(owner, repo, "commits")
        params: dict[str, Any] = {"sha": ref, "per_page": 1}
        if path:
            params["path"] = path
        commits = self._request(url, params=params).json()
        if not commits:
            raise TransportError(
                f"No commits found for {owner}/{repo}@{ref}", url=url
            )
        commit = commits[0]
        details = commit.get("commit") or {}
        message = (details.get("message") or "").split("\n", 1)[0]
        date = (details.get("committer") or details.get("author") or {}).get(
            "date"
        )
        return CommitInfo(sha=commit["sha"], date=date, message=message)

    def compare(
        self, owner: str, repo: str, base: str, head: str
    ) -> list[ComparedFile]:
        """List the files that differ between two commits."""
        url = self._repo_url(
            owner, repo, "compare", f"{quote(base)}...{quote(head)}"
        )
        data = self._request(url).json()
        return [
            ComparedFile(
                filename=item["filename"],
                status=item.get("status", "modified"),
                previous_filename=item.get("previous_filename"),
            )
            for item in data.get("files") or []
        ]
