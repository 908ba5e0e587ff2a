"""Dry-run change detection.

Compares each enabled source's latest upstream commit with the watermark
recorded by the last successful sync.  Nothing is written: not the
content store, not the metadata store, not the disk.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..errors import MirrorError, SyncCancelled
from .models import DryRunReport, DryRunResult, DryRunStatus

if TYPE_CHECKING:
    from ..config_schema import SourceConfig
    from ..core.client import GitHubClient
    from .metadata import MetadataStore

logger = logging.getLogger(__name__)


def _under_root(filename: str, root: str) -> bool:
    return not root or filename == root or filename.startswith(root + "/")


def _inspect_changes(
    client: GitHubClient, source: SourceConfig, base: str, head: str
) -> tuple[list[str], list[str], list[str]]:
    added: list[str] = []
    modified: list[str] = []
    removed: list[str] = []
    for changed in client.compare(source.owner, source.repo, base, head):
        if changed.status == "renamed":
            if changed.previous_filename and _under_root(
                changed.previous_filename, source.path
            ):
                removed.append(changed.previous_filename)
            if _under_root(changed.filename, source.path):
                added.append(changed.filename)
            continue
        if not _under_root(changed.filename, source.path):
            continue
        if changed.status == "added":
            added.append(changed.filename)
        elif changed.status == "removed":
            removed.append(changed.filename)
        else:
            modified.append(changed.filename)
    return sorted(added), sorted(modified), sorted(removed)


def check_source(
    client: GitHubClient,
    metadata: MetadataStore,
    source: SourceConfig,
    inspect: bool = False,
) -> DryRunResult:
    """Report whether *source* changed since its last sync.

    Errors are reported in the result (status ``error``) rather than
    raised; ``SyncCancelled`` still propagates.
    """
    base = {"source_name": source.display_name, "source_key": source.source_key}
    watermark = metadata.get_watermark(source.source_key) or {}
    previous_sha = watermark.get("last_synced_sha")

    try:
        latest = client.latest_commit(
            source.owner, source.repo, source.ref, source.path or None
        )
    except SyncCancelled:
        raise
    except MirrorError as exc:
        logger.error(
            "Dry run check failed for %s (%s/%s): %s",
            source.display_name,
            source.owner,
            source.repo,
            exc,
        )
        return DryRunResult(
            **base,
            status=DryRunStatus.ERROR,
            previous_sha=previous_sha,
            error=str(exc),
        )

    details = {
        "sha": latest.sha,
        "previous_sha": previous_sha,
        "last_synced_at": watermark.get("synced_at"),
        "commit_message": latest.message,
        "commit_date": latest.date,
    }

    if previous_sha is None:
        return DryRunResult(
            **base, status=DryRunStatus.NEVER_SYNCED, **details
        )
    if previous_sha == latest.sha:
        return DryRunResult(**base, status=DryRunStatus.UNCHANGED, **details)

    if not inspect:
        return DryRunResult(**base, status=DryRunStatus.CHANGED, **details)

    try:
        added, modified, removed = _inspect_changes(
            client, source, previous_sha, latest.sha
        )
    except SyncCancelled:
        raise
    except MirrorError as exc:
        logger.warning(
            "Could not list changes for %s: %s", source.display_name, exc
        )
        return DryRunResult(
            **base, status=DryRunStatus.CHANGED, error=str(exc), **details
        )

    return DryRunResult(
        **base,
        status=DryRunStatus.CHANGED,
        added=added,
        modified=modified,
        removed=removed,
        **details,
    )


def run_dry_run(
    client: GitHubClient,
    metadata: MetadataStore,
    sources: Sequence[SourceConfig],
    inspect: bool = False,
) -> DryRunReport:
    """Check every enabled source; one failure never stops the others."""
    results: list[DryRunResult] = []
    for source in sources:
        if not source.enabled:
            logger.debug("Skipping disabled source %s", source.display_name)
            continue
        result = check_source(client, metadata, source, inspect)
        logger.info(
            "%s: %s", source.display_name, result.status.value
        )
        results.append(result)

    return DryRunReport(
        results=results,
        checked_at=datetime.now(timezone.utc).isoformat(),
    )
