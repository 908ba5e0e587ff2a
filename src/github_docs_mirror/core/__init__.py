"""GitHub transport shared by the sync engine and the CLI."""

from .client import (
    CommitInfo,
    ComparedFile,
    FetchResult,
    GitHubClient,
    RemoteEntry,
)

__all__ = [
    "CommitInfo",
    "ComparedFile",
    "FetchResult",
    "GitHubClient",
    "RemoteEntry",
]
