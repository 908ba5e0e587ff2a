"""Orchestrator that mirrors every configured source into the store.

The ``SyncEngine`` ties together the walker, conditional cache, transform
pipeline, link rewriting, asset resolver, store writer and selective
cleanup.  For each enabled source, in configured order, it:

1. Looks up the latest upstream commit (and, with ``skip_unchanged``,
   stops early when it equals the recorded watermark).
2. Walks the remote tree and plans an id and destination per file.
3. Fetches each file conditionally; a 304 ends that file's pipeline.
4. Transforms, rewrites links, downloads assets and stores the result.
5. Removes entries that disappeared upstream (selective cleanup), unless
   a directory could not be listed.
6. Records the new watermark and flushes metadata and store.

Error handling is per-file and per-source: a failure is logged and
recorded in the report, and processing moves on.  Only ``SyncCancelled``
escapes ``run()``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..config_schema import SourceConfig, SyncSettings
from ..errors import (
    CleanupError,
    ConfigurationError,
    MirrorError,
    StateTrackingError,
    SyncCancelled,
    raise_if_cancelled,
)
from ..file_handler import decode_content
from .assets import process_assets
from .cache import get_headers, sync_headers
from .cleanup import cleanup_source, expected_ids, perform_selective_cleanup
from .dryrun import run_dry_run
from .links import rewrite_links
from .metadata import MetadataStore
from .models import (
    DryRunReport,
    FileAction,
    FileResult,
    ImportedFile,
    SourceReport,
    SourceStatus,
    SyncRunReport,
)
from .paths import apply_path_mapping, file_extension, generate_id, generate_path
from .store import StoreHost, content_hash, is_current, store_processed_file
from .transforms import TransformContext, apply_transforms
from .walker import filter_included, walk_tree

if TYPE_CHECKING:
    from ..core.client import CommitInfo, GitHubClient, RemoteEntry

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _SourceRun:
    """Mutable per-source bookkeeping while an import is in progress."""

    def __init__(self, source: SourceConfig) -> None:
        self.source = source
        self.files: list[FileResult] = []
        self.assets_downloaded = 0
        self.assets_cached = 0


class SyncEngine:
    """Mirror a list of sources into a content store.

    Args:
        client: GitHub transport.
        sources: Sources in the order they should be processed.
        host: Content store, entry types and project root.
        metadata: Cache/watermark store, loaded once for the run.
        settings: Run-wide options (delay, clear, skip_unchanged).
        cancel_event: Set it to stop the run with ``SyncCancelled``.
        sleep: Injected for tests; called with the inter-source delay.
    """

    def __init__(
        self,
        client: GitHubClient,
        sources: Sequence[SourceConfig],
        host: StoreHost,
        metadata: MetadataStore,
        settings: SyncSettings | None = None,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.sources = list(sources)
        self.host = host
        self.metadata = metadata
        self.settings = settings or SyncSettings()
        self.cancel_event = cancel_event
        self._sleep = sleep
        # id -> "owner/repo@ref:path" of the file that claimed it this run
        self._claimed_ids: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Main entry points
    # ------------------------------------------------------------------

    def run(self) -> SyncRunReport:
        """Import every enabled source.

        Returns:
            A ``SyncRunReport`` with one ``SourceReport`` per source.

        Raises:
            SyncCancelled: If the cancellation event is set.
        """
        started_at = _now()
        reports: list[SourceReport] = []
        self._claimed_ids.clear()
        processed = 0

        for source in self.sources:
            raise_if_cancelled(self.cancel_event)

            if not source.enabled:
                logger.info("Skipping disabled source %s", source.display_name)
                reports.append(
                    SourceReport(
                        source_name=source.display_name,
                        source_key=source.source_key,
                        status=SourceStatus.DISABLED,
                    )
                )
                continue

            if processed and self.settings.delay_between_sources > 0:
                self._sleep(self.settings.delay_between_sources)
            processed += 1

            source_started = _now()
            try:
                report = self.import_source(source)
            except SyncCancelled:
                raise
            except Exception as exc:
                logger.error(
                    "Import of %s (%s/%s@%s) failed: %s",
                    source.display_name,
                    source.owner,
                    source.repo,
                    source.ref,
                    exc,
                )
                report = SourceReport(
                    source_name=source.display_name,
                    source_key=source.source_key,
                    status=SourceStatus.FAILED,
                    error=str(exc),
                    started_at=source_started,
                    completed_at=_now(),
                )
            finally:
                self._flush()
            reports.append(report)

        return SyncRunReport(
            sources=reports, started_at=started_at, completed_at=_now()
        )

    def dry_run(self, inspect: bool = False) -> DryRunReport:
        """Preview which sources changed; never writes anything."""
        return run_dry_run(self.client, self.metadata, self.sources, inspect)

    def run_cleanup(self) -> list[SourceReport]:
        """Run selective cleanup (fresh walk) for every enabled source."""
        reports: list[SourceReport] = []
        for source in self.sources:
            raise_if_cancelled(self.cancel_event)
            if not source.enabled:
                continue
            started_at = _now()
            try:
                deleted = perform_selective_cleanup(
                    self.client,
                    source,
                    self.host.store,
                    self.host.project_root,
                    self.metadata,
                    self.cancel_event,
                )
            except CleanupError as exc:
                logger.error("%s", exc)
                reports.append(
                    SourceReport(
                        source_name=source.display_name,
                        source_key=source.source_key,
                        status=SourceStatus.FAILED,
                        error=str(exc),
                        started_at=started_at,
                        completed_at=_now(),
                    )
                )
                continue
            finally:
                self._flush()
            reports.append(
                SourceReport(
                    source_name=source.display_name,
                    source_key=source.source_key,
                    status=SourceStatus.SUCCESS,
                    cleaned_up=deleted,
                    started_at=started_at,
                    completed_at=_now(),
                )
            )
        return reports

    # ------------------------------------------------------------------
    # Per-source import
    # ------------------------------------------------------------------

    def import_source(self, source: SourceConfig) -> SourceReport:
        """Import one source.

        Per-file failures are recorded, not raised, and so are failed
        subdirectory listings; an incomplete walk also skips cleanup.  A
        failed root listing and configuration problems propagate to
        ``run()``.
        """
        started_at = _now()
        clear = self.settings.clear if source.clear is None else source.clear
        latest = self._latest_commit(source)

        if self.settings.skip_unchanged and latest is not None:
            watermark = self.metadata.get_watermark(source.source_key)
            if watermark and watermark.get("last_synced_sha") == latest.sha:
                logger.info(
                    "%s unchanged since %s, skipping",
                    source.display_name,
                    latest.sha[:7],
                )
                return SourceReport(
                    source_name=source.display_name,
                    source_key=source.source_key,
                    status=SourceStatus.UNCHANGED,
                    commit_sha=latest.sha,
                    started_at=started_at,
                    completed_at=_now(),
                )

        logger.info(
            "Importing %s (%s/%s@%s:%s)",
            source.display_name,
            source.owner,
            source.repo,
            source.ref,
            source.path or "/",
        )
        failed_dirs: list[tuple[str, MirrorError]] = []
        entries = filter_included(
            source,
            walk_tree(self.client, source, self.cancel_event, failed_dirs),
        )
        plan = self._plan(source, entries)
        source_to_target = {
            entry.path: file_path for entry, _, file_path in plan if file_path
        }

        run = _SourceRun(source)
        for dir_path, exc in failed_dirs:
            run.files.append(
                FileResult(
                    source_path=dir_path,
                    action=FileAction.FAILED,
                    success=False,
                    error=f"Listing failed: {exc}",
                )
            )
        for entry, entry_id, file_path in plan:
            raise_if_cancelled(self.cancel_event)
            try:
                result = self._import_file(
                    run, entry, entry_id, file_path, source_to_target, clear
                )
            except SyncCancelled:
                raise
            except Exception as exc:
                logger.error(
                    "Failed to import %s from %s (%s/%s): %s",
                    entry.path,
                    source.display_name,
                    source.owner,
                    source.repo,
                    exc,
                )
                result = FileResult(
                    id=entry_id,
                    source_path=entry.path,
                    file_path=file_path or None,
                    action=FileAction.FAILED,
                    success=False,
                    error=str(exc),
                )
            run.files.append(result)

        failed = [f for f in run.files if not f.success]
        if not failed:
            status = SourceStatus.SUCCESS
        elif len(failed) == len(run.files):
            status = SourceStatus.FAILED
        else:
            status = SourceStatus.PARTIAL

        cleaned_up: list[str] = []
        error: str | None = None
        if source.cleanup and failed_dirs:
            logger.warning(
                "Skipping cleanup of %s: %d directory listing(s) failed",
                source.display_name,
                len(failed_dirs),
            )
        elif source.cleanup:
            try:
                cleaned_up = cleanup_source(
                    source,
                    self.host.store,
                    expected_ids(source, entries),
                    self.host.project_root,
                    self.metadata,
                )
            except CleanupError as exc:
                logger.error("%s", exc)
                error = str(exc)

        commit_sha = None
        if status == SourceStatus.SUCCESS:
            commit_sha = self._record_watermark(source, latest)

        report = SourceReport(
            source_name=source.display_name,
            source_key=source.source_key,
            status=status,
            files=run.files,
            assets_downloaded=run.assets_downloaded,
            assets_cached=run.assets_cached,
            cleaned_up=cleaned_up,
            commit_sha=commit_sha,
            error=error,
            started_at=started_at,
            completed_at=_now(),
        )
        logger.info(
            "%s: %d imported, %d not modified, %d unchanged, %d failed, "
            "%d cleaned up",
            source.display_name,
            len(report.imported),
            len(report.not_modified),
            len(report.unchanged),
            len(report.errors),
            len(cleaned_up),
        )
        return report

    def _plan(
        self, source: SourceConfig, entries: list[RemoteEntry]
    ) -> list[tuple[RemoteEntry, str, str]]:
        plan = []
        for entry in entries:
            mapped = apply_path_mapping(entry.path, source)
            extension = file_extension(mapped)
            if self.host.registry.get(extension) is None:
                # Images and other assets are fetched on reference only
                logger.debug("No entry type for %s, not importing", entry.path)
                continue
            entry_id = generate_id(source, mapped)
            file_path = generate_path(source, entry_id, extension=extension)
            plan.append((entry, entry_id, file_path))
        return plan

    # ------------------------------------------------------------------
    # Per-file pipeline
    # ------------------------------------------------------------------

    def _import_file(
        self,
        run: _SourceRun,
        entry: RemoteEntry,
        entry_id: str,
        file_path: str,
        source_to_target: dict[str, str],
        clear: bool,
    ) -> FileResult:
        source = run.source
        if not file_path:
            logger.warning(
                "No destination for %s in %s, skipping",
                entry.path,
                source.display_name,
            )
            return FileResult(
                id=entry_id, source_path=entry.path, action=FileAction.SKIPPED
            )

        claimant = f"{source.owner}/{source.repo}@{source.ref}:{entry.path}"
        claimed_by = self._claimed_ids.get(entry_id)
        if claimed_by is not None and claimed_by != claimant:
            raise ConfigurationError(
                f"Id '{entry_id}' for {claimant} is already used by "
                f"{claimed_by}; adjust 'base_path', 'replace' or "
                f"'path_mappings'"
            )
        self._claimed_ids[entry_id] = claimant

        local_exists = (self.host.project_root / file_path).exists()
        headers = get_headers(None, self.metadata, entry_id)
        fetched = self.client.fetch_blob(
            source.owner, source.repo, source.ref, entry.path, headers
        )
        if fetched.not_modified:
            if local_exists and self.host.store.has(entry_id):
                logger.debug("%s not modified", entry.path)
                return FileResult(
                    id=entry_id,
                    source_path=entry.path,
                    file_path=file_path,
                    action=FileAction.NOT_MODIFIED,
                )
            logger.info(
                "%s not modified but %s is missing locally or from the "
                "store, fetching again",
                entry.path,
                entry_id,
            )
            fetched = self.client.fetch_blob(
                source.owner, source.repo, source.ref, entry.path
            )

        content, _ = decode_content(fetched.content)
        context = TransformContext(
            id=entry_id, path=entry.path, source=source, file_path=file_path
        )
        content = apply_transforms(content, source.transforms, context)

        if source.links is not None:
            content = rewrite_links(
                content, entry.path, source_to_target, source.links
            )

        assets = process_assets(
            self.client,
            source,
            content,
            entry.path,
            file_path,
            self.host.project_root,
            self.cancel_event,
        )
        run.assets_downloaded += assets.downloaded
        run.assets_cached += assets.cached

        imported = ImportedFile(
            id=entry_id,
            source_path=entry.path,
            file_path=file_path,
            content=assets.content,
            digest=content_hash(assets.content),
        )
        unchanged = is_current(self.host.store, imported)
        store_processed_file(imported, self.host, clear)

        # Validators are recorded only once the file is safely stored
        sync_headers(fetched.headers, self.metadata, entry_id)

        return FileResult(
            id=entry_id,
            source_path=entry.path,
            file_path=file_path,
            action=FileAction.UNCHANGED if unchanged else FileAction.IMPORTED,
        )

    # ------------------------------------------------------------------
    # Watermarks and persistence
    # ------------------------------------------------------------------

    def _latest_commit(self, source: SourceConfig) -> CommitInfo | None:
        try:
            return self.client.latest_commit(
                source.owner, source.repo, source.ref, source.path or None
            )
        except SyncCancelled:
            raise
        except MirrorError as exc:
            logger.warning(
                "Could not read latest commit for %s: %s",
                source.display_name,
                exc,
            )
            return None

    def _record_watermark(
        self, source: SourceConfig, latest: CommitInfo | None
    ) -> str | None:
        if latest is None:
            latest = self._latest_commit(source)
        if latest is None:
            error = StateTrackingError(
                f"Watermark for {source.display_name} not updated"
            )
            logger.warning("%s", error)
            return None
        try:
            self.metadata.set_watermark(source.source_key, latest.sha)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning(
                "%s",
                StateTrackingError(
                    f"Watermark update for {source.display_name} failed: {exc}"
                ),
            )
            return None
        return latest.sha

    def _flush(self) -> None:
        for name, target in (
            ("metadata", self.metadata),
            ("content store", self.host.store),
        ):
            try:
                target.flush()
            except OSError as exc:
                logger.error("Failed to persist %s: %s", name, exc)
