"""Remote tree traversal."""

from __future__ import annotations

import logging
import threading
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING

from ..core.client import RemoteEntry
from ..errors import MirrorError, SyncCancelled, raise_if_cancelled

if TYPE_CHECKING:
    from ..config_schema import SourceConfig
    from ..core.client import GitHubClient

logger = logging.getLogger(__name__)


def walk_tree(
    client: GitHubClient,
    source: SourceConfig,
    cancel_event: threading.Event | None = None,
    failed_dirs: list[tuple[str, MirrorError]] | None = None,
) -> list[RemoteEntry]:
    """Collect every file below the source's root path.

    Directories go onto an explicit stack and are listed in turn; files
    are collected.  If the root path is itself a file, it is the single
    entry returned.  Result order is not guaranteed.

    When *failed_dirs* is given, a subdirectory whose listing fails is
    logged and appended to it as ``(path, error)``, and the walk carries
    on with the remaining directories.

    Raises:
        SyncCancelled: If *cancel_event* is set before a directory is
            listed.
        MirrorError: If the root listing fails, or any listing fails
            when *failed_dirs* is ``None``.
    """
    stack: list[str] = [source.path]
    files: list[RemoteEntry] = []

    while stack:
        raise_if_cancelled(cancel_event)
        current = stack.pop()
        try:
            children = client.list_children(
                source.owner, source.repo, source.ref, current
            )
        except SyncCancelled:
            raise
        except MirrorError as exc:
            if failed_dirs is None or current == source.path:
                raise
            logger.error(
                "Could not list %s in %s (%s/%s): %s",
                current,
                source.display_name,
                source.owner,
                source.repo,
                exc,
            )
            failed_dirs.append((current, exc))
            continue

        for child in children:
            if child.is_dir:
                stack.append(child.path)
            elif child.is_file:
                files.append(child)
            else:
                logger.debug(
                    "Skipping %s entry %s in %s",
                    child.type,
                    child.path,
                    source.display_name,
                )

    logger.debug(
        "Walked %s: %d file(s) under '%s'",
        source.display_name,
        len(files),
        source.path or "/",
    )
    return files


def filter_included(
    source: SourceConfig, entries: list[RemoteEntry]
) -> list[RemoteEntry]:
    """Keep the entries matching one of the source's ``includes`` globs.

    Without ``includes`` every entry is kept.
    """
    if not source.includes:
        return list(entries)
    return [
        entry
        for entry in entries
        if any(fnmatchcase(entry.path, pattern) for pattern in source.includes)
    ]
