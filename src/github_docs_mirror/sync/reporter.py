"""Report formatting functions.

Provides human-readable and machine-readable output for mirror runs:

- ``format_sync_report`` -- post-sync summary per source.
- ``format_dry_run_report`` -- change preview per source.
- ``format_cleanup_report`` -- ids removed by the ``cleanup`` command.
- ``report_to_json`` / ``dry_run_to_json`` / ``cleanup_to_json`` --
  structured dicts for ``--json`` output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .models import DryRunStatus, SourceStatus

if TYPE_CHECKING:
    from .models import DryRunReport, SourceReport, SyncRunReport

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncRunReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one entry.
    Unchanged and not-modified files are summarised by count only.

    Args:
        report: The completed run report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("Sync report")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")
    lines.append(report.summary())
    lines.append("")

    for source in report.sources:
        header = f"[{source.status.value.upper()}] {source.source_name}"
        if source.commit_sha:
            header += f" @ {source.commit_sha[:7]}"
        lines.append(header)

        if source.status == SourceStatus.DISABLED:
            lines.append("")
            continue
        if source.error:
            lines.append(f"  Error: {source.error}")

        for f in source.imported:
            lines.append(f"  + {f.source_path} -> {f.file_path}")

        quiet = len(source.not_modified) + len(source.unchanged)
        if quiet:
            lines.append(f"  = {quiet} file(s) unchanged")

        for f in source.skipped:
            lines.append(f"  ~ {f.source_path} (no destination)")

        for f in source.errors:
            lines.append(f"  ! {f.source_path}: {f.error}")

        for entry_id in source.cleaned_up:
            lines.append(f"  - {entry_id}")

        if source.assets_downloaded or source.assets_cached:
            lines.append(
                f"  Assets: {source.assets_downloaded} downloaded, "
                f"{source.assets_cached} cached"
            )
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------

_DRY_RUN_LABELS = {
    DryRunStatus.UNCHANGED: "up to date",
    DryRunStatus.CHANGED: "changes upstream",
    DryRunStatus.NEVER_SYNCED: "never synced",
    DryRunStatus.ERROR: "check failed",
}


def format_dry_run_report(report: DryRunReport) -> str:
    """Format a dry-run report, one block per source.

    Args:
        report: The dry-run report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Checked: {report.checked_at}")
    lines.append("")

    for r in report.results:
        lines.append(f"{r.source_name}: {_DRY_RUN_LABELS[r.status]}")
        if r.sha:
            latest = f"  Latest:  {r.sha[:7]}"
            if r.commit_message:
                latest += f" {r.commit_message}"
            lines.append(latest)
        if r.previous_sha:
            lines.append(
                f"  Synced:  {r.previous_sha[:7]} ({r.last_synced_at})"
            )
        for label, paths in (
            ("added", r.added),
            ("modified", r.modified),
            ("removed", r.removed),
        ):
            for path in paths:
                lines.append(f"  {label}: {path}")
        if r.error:
            lines.append(f"  Error: {r.error}")
        lines.append("")

    pending = len(report.changed) + len(report.never_synced)
    if pending:
        lines.append(f"{pending} source(s) would be re-imported.")
    else:
        lines.append("No changes needed.")

    return "\n".join(lines).rstrip()


def format_cleanup_report(reports: list[SourceReport]) -> str:
    lines: list[str] = []
    for source in reports:
        if source.error:
            lines.append(f"{source.source_name}: failed ({source.error})")
            continue
        lines.append(
            f"{source.source_name}: removed {len(source.cleaned_up)} entries"
        )
        for entry_id in source.cleaned_up:
            lines.append(f"  - {entry_id}")
    return "\n".join(lines) if lines else "No sources to clean up."


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncRunReport) -> dict:
    """Convert a run report to a structured dict for JSON serialisation.

    Args:
        report: The run report.

    Returns:
        Dict with timestamps, aggregate counts, and per-source details.
    """
    sources = []
    for s in report.sources:
        sources.append(
            {
                "name": s.source_name,
                "key": s.source_key,
                "status": s.status.value,
                "commit_sha": s.commit_sha,
                "error": s.error,
                "counts": {
                    "imported": len(s.imported),
                    "not_modified": len(s.not_modified),
                    "unchanged": len(s.unchanged),
                    "skipped": len(s.skipped),
                    "errors": len(s.errors),
                    "assets_downloaded": s.assets_downloaded,
                    "assets_cached": s.assets_cached,
                    "cleaned_up": len(s.cleaned_up),
                },
                "files": [
                    f.model_dump(mode="json", exclude_none=True)
                    for f in s.files
                ],
                "cleaned_up": s.cleaned_up,
            }
        )

    return {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "failed_sources": len(report.failed_sources),
        "file_errors": len(report.file_errors),
        "sources": sources,
    }


def dry_run_to_json(report: DryRunReport) -> dict:
    return {
        "checked_at": report.checked_at,
        "sources": [
            r.model_dump(mode="json", exclude_none=True)
            for r in report.results
        ],
    }


def cleanup_to_json(reports: list[SourceReport]) -> dict:
    return {
        "sources": [
            {
                "name": s.source_name,
                "key": s.source_key,
                "status": s.status.value,
                "error": s.error,
                "cleaned_up": s.cleaned_up,
            }
            for s in reports
        ]
    }
