"""Selective cleanup of entries that disappeared upstream.

Cleanup is scoped to one source's destination prefix (``base_path``):
entries stored by other sources, or outside any source, are never
touched.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import CleanupError, MirrorError, SyncCancelled
from ..file_handler import ensure_within_root
from .paths import apply_path_mapping, generate_id
from .walker import filter_included, walk_tree

if TYPE_CHECKING:
    from ..config_schema import SourceConfig
    from ..core.client import GitHubClient, RemoteEntry
    from .metadata import MetadataStore
    from .store import ContentStore

logger = logging.getLogger(__name__)


def _under_prefix(file_path: str, prefix: str) -> bool:
    return file_path == prefix or file_path.startswith(prefix + "/")


def expected_ids(
    source: SourceConfig, entries: Iterable[RemoteEntry]
) -> set[str]:
    """Ids the source's current upstream files map to."""
    return {
        generate_id(source, apply_path_mapping(entry.path, source))
        for entry in entries
        if entry.is_file
    }


def cleanup_source(
    source: SourceConfig,
    store: ContentStore,
    expected: set[str],
    project_root: Path,
    metadata: MetadataStore | None = None,
) -> list[str]:
    """Delete stored entries under the source's prefix not in *expected*.

    The local mirror file of each deleted entry is removed when it lies
    under the same prefix.  Cache records of deleted ids are dropped.

    Returns:
        Sorted ids that were deleted.

    Raises:
        CleanupError: The source has no destination prefix, a stale
            entry points outside the project root (nothing is deleted
            then), or a local file could not be removed.
    """
    prefix = source.base_path.strip().rstrip("/")
    if not prefix:
        raise CleanupError(
            f"Refusing to clean up {source.display_name}: no base_path"
        )

    stale = [
        entry
        for entry in store.entries()
        if entry.file_path
        and _under_prefix(entry.file_path, prefix)
        and entry.id not in expected
    ]

    # Every path is checked before the first deletion
    try:
        prefix_path = ensure_within_root(prefix, project_root)
        local_paths = [
            ensure_within_root(entry.file_path, project_root) for entry in stale
        ]
    except ValueError as exc:
        raise CleanupError(
            f"Refusing to clean up {source.display_name} "
            f"({source.owner}/{source.repo}): {exc}"
        ) from exc

    deleted: list[str] = []
    for entry, local_path in zip(stale, local_paths):
        store.delete(entry.id)
        if metadata is not None:
            metadata.delete_cache(entry.id)
        deleted.append(entry.id)
        try:
            if local_path.is_relative_to(prefix_path) and local_path.is_file():
                local_path.unlink()
        except OSError as exc:
            raise CleanupError(
                f"Cleanup of {entry.id} for {source.display_name} "
                f"({source.owner}/{source.repo}) failed: {exc}"
            ) from exc
        logger.info(
            "Removed %s (%s) no longer present in %s",
            entry.id,
            entry.file_path,
            source.display_name,
        )

    return sorted(deleted)


def perform_selective_cleanup(
    client: GitHubClient,
    source: SourceConfig,
    store: ContentStore,
    project_root: Path,
    metadata: MetadataStore | None = None,
    cancel_event: threading.Event | None = None,
) -> list[str]:
    """Walk the source afresh, then run ``cleanup_source``.

    Raises:
        CleanupError: The walk or a deletion failed.
        SyncCancelled: If *cancel_event* is set during the walk.
    """
    try:
        entries = filter_included(
            source, walk_tree(client, source, cancel_event)
        )
    except SyncCancelled:
        raise
    except MirrorError as exc:
        raise CleanupError(
            f"Could not list {source.display_name} for cleanup: {exc}"
        ) from exc

    return cleanup_source(
        source,
        store,
        expected_ids(source, entries),
        project_root,
        metadata,
    )
