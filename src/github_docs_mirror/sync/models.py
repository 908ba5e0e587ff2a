"""Pydantic models for the mirror engine.

Defines the data contracts used across all sync modules:

- ``FileAction``: What happened to one remote file.
- ``ImportedFile``: A fetched and transformed file ready for the store.
- ``FileResult``: Outcome of processing one file.
- ``SourceStatus`` / ``SourceReport``: Outcome of importing one source.
- ``SyncRunReport``: Aggregate results for a full run.
- ``DryRunStatus`` / ``DryRunResult`` / ``DryRunReport``: Change preview.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class FileAction(str, Enum):
    """Possible outcomes for one remote file."""

    IMPORTED = "imported"
    NOT_MODIFIED = "not_modified"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


class ImportedFile(BaseModel):
    """A remote file after fetch and transformation.

    Attributes:
        id: Stable entry identifier.
        source_path: Path of the file inside the remote repository.
        file_path: Local destination path (relative to the project root).
        content: Final transformed text.
        digest: SHA-256 of the normalised content.
    """

    id: str
    source_path: str
    file_path: str
    content: str
    digest: str

    model_config = {"frozen": True}

    @property
    def extension(self) -> str:
        name = self.file_path.rsplit("/", 1)[-1]
        return name[name.rfind(".") :].lower() if "." in name else ""


class FileResult(BaseModel):
    """Result of processing one remote file.

    Attributes:
        id: Entry id, or ``None`` when id generation never happened.
        source_path: Remote path.
        file_path: Local destination path.
        action: What happened.
        success: False only for ``FileAction.FAILED``.
        error: Error message if processing failed.
    """

    id: str | None = None
    source_path: str
    file_path: str | None = None
    action: FileAction
    success: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class SourceStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    UNCHANGED = "unchanged"
    DISABLED = "disabled"


class SourceReport(BaseModel):
    """Outcome of importing one source.

    Attributes:
        source_name: Display name of the source.
        source_key: ``owner/repo@ref[:path]`` identity.
        status: Overall status.
        files: Per-file results.
        assets_downloaded: Assets fetched during this run.
        assets_cached: Assets already present locally.
        cleaned_up: Ids removed by selective cleanup.
        commit_sha: Watermark recorded after the import, if any.
        error: Source-level error message.
        started_at: ISO 8601 timestamp.
        completed_at: ISO 8601 timestamp.
    """

    source_name: str
    source_key: str
    status: SourceStatus
    files: list[FileResult] = []
    assets_downloaded: int = 0
    assets_cached: int = 0
    cleaned_up: list[str] = []
    commit_sha: str | None = None
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: FileAction) -> list[FileResult]:
        return [f for f in self.files if f.action == action]

    @property
    def imported(self) -> list[FileResult]:
        return self._with_action(FileAction.IMPORTED)

    @property
    def not_modified(self) -> list[FileResult]:
        return self._with_action(FileAction.NOT_MODIFIED)

    @property
    def unchanged(self) -> list[FileResult]:
        return self._with_action(FileAction.UNCHANGED)

    @property
    def skipped(self) -> list[FileResult]:
        return self._with_action(FileAction.SKIPPED)

    @property
    def errors(self) -> list[FileResult]:
        return [f for f in self.files if not f.success]


class SyncRunReport(BaseModel):
    """Aggregate report for a full run.

    Attributes:
        sources: One report per configured source, in configured order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    sources: list[SourceReport] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def failed_sources(self) -> list[SourceReport]:
        return [s for s in self.sources if s.status == SourceStatus.FAILED]

    @property
    def file_errors(self) -> list[FileResult]:
        return [f for s in self.sources for f in s.errors]

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts across all sources.
        """
        processed = [
            s for s in self.sources if s.status != SourceStatus.DISABLED
        ]
        lines = [
            f"Sync run over {len(processed)} source(s)",
            f"  Imported:      {sum(len(s.imported) for s in processed)}",
            f"  Not modified:  {sum(len(s.not_modified) for s in processed)}",
            f"  Unchanged:     {sum(len(s.unchanged) for s in processed)}",
            f"  Assets:        {sum(s.assets_downloaded for s in processed)}"
            f" downloaded, {sum(s.assets_cached for s in processed)} cached",
            f"  Cleaned up:    {sum(len(s.cleaned_up) for s in processed)}",
            f"  File errors:   {len(self.file_errors)}",
            f"  Failed sources: {len(self.failed_sources)}",
        ]
        return "\n".join(lines)


class DryRunStatus(str, Enum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"
    NEVER_SYNCED = "never-synced"
    ERROR = "error"


class DryRunResult(BaseModel):
    """Change preview for one source.

    Attributes:
        source_name: Display name of the source.
        source_key: ``owner/repo@ref[:path]`` identity.
        status: Comparison outcome.
        sha: Latest upstream commit.
        previous_sha: Watermark from the last successful sync.
        last_synced_at: When the watermark was recorded.
        commit_message: First line of the latest commit message.
        commit_date: Date of the latest commit.
        added / modified / removed: Paths under the source root that
            changed since the watermark (only with ``inspect=True``).
        error: Error message when ``status`` is ``error``.
    """

    source_name: str
    source_key: str
    status: DryRunStatus
    sha: str | None = None
    previous_sha: str | None = None
    last_synced_at: str | None = None
    commit_message: str | None = None
    commit_date: str | None = None
    added: list[str] = []
    modified: list[str] = []
    removed: list[str] = []
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def needs_reimport(self) -> bool:
        return self.status in (
            DryRunStatus.CHANGED,
            DryRunStatus.NEVER_SYNCED,
        )


class DryRunReport(BaseModel):
    results: list[DryRunResult] = []
    checked_at: str

    model_config = {"frozen": True}

    def _with_status(self, status: DryRunStatus) -> list[DryRunResult]:
        return [r for r in self.results if r.status == status]

    @property
    def changed(self) -> list[DryRunResult]:
        return self._with_status(DryRunStatus.CHANGED)

    @property
    def unchanged(self) -> list[DryRunResult]:
        return self._with_status(DryRunStatus.UNCHANGED)

    @property
    def never_synced(self) -> list[DryRunResult]:
        return self._with_status(DryRunStatus.NEVER_SYNCED)

    @property
    def errors(self) -> list[DryRunResult]:
        return self._with_status(DryRunStatus.ERROR)
