"""GitHub documentation mirror engine.

Public API for mirroring subtrees of GitHub repositories into a local
content store.

Architecture
------------
The engine walks each source's remote tree, fetches files with
conditional requests (etag / last-modified validators kept in a private
metadata store), transforms them, relocates referenced assets and stores
the result.  Store digests make a second run with no upstream changes a
no-op; per-source watermarks (last synced commit) drive dry runs and
``skip_unchanged``.

Modules:

- ``engine``    -- ``SyncEngine``: orchestrates a full run.
- ``paths``     -- id and destination path resolution.
- ``cache``     -- conditional request headers.
- ``metadata``  -- ``MetadataStore``: validators and watermarks.
- ``walker``    -- remote tree traversal.
- ``transforms``-- transform pipeline and built-in transforms.
- ``links``     -- Markdown link rewriting.
- ``assets``    -- asset detection, download and reference rewriting.
- ``store``     -- content store, entry types and store writer.
- ``cleanup``   -- prefix-scoped removal of vanished entries.
- ``dryrun``    -- change preview against watermarks.
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from github_docs_mirror.config import Config
    from github_docs_mirror.config_schema import SourceConfig
    from github_docs_mirror.core.client import GitHubClient
    from github_docs_mirror.sync import (
        ContentStore, JsonMetadataStore, StoreHost, SyncEngine,
        format_sync_report,
    )

    source = SourceConfig(
        owner="example-org",
        repo="example-repo",
        path="docs/features",
        base_path="src/content/docs/features",
        transforms=["convert_h1_to_title"],
    )

    engine = SyncEngine(
        client=GitHubClient(Config(token="...")),
        sources=[source],
        host=StoreHost(store=ContentStore(), project_root=Path.cwd()),
        metadata=JsonMetadataStore(Path(".github_docs_mirror")),
    )

    # Preview first
    preview = engine.dry_run()

    # Then import
    report = engine.run()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .metadata import JsonMetadataStore, MetadataStore
from .models import (
    DryRunReport,
    DryRunResult,
    DryRunStatus,
    FileAction,
    FileResult,
    ImportedFile,
    SourceReport,
    SourceStatus,
    SyncRunReport,
)
from .reporter import (
    cleanup_to_json,
    dry_run_to_json,
    format_cleanup_report,
    format_dry_run_report,
    format_sync_report,
    report_to_json,
)
from .store import (
    ContentStore,
    EntryTypeHandler,
    EntryTypeRegistry,
    JsonContentStore,
    MarkdownEntryType,
    ParsedEntry,
    StoreEntry,
    StoreHost,
)
from .transforms import TransformContext, apply_transforms, build_transform

__all__ = [
    "ContentStore",
    "DryRunReport",
    "DryRunResult",
    "DryRunStatus",
    "EntryTypeHandler",
    "EntryTypeRegistry",
    "FileAction",
    "FileResult",
    "ImportedFile",
    "JsonContentStore",
    "JsonMetadataStore",
    "MarkdownEntryType",
    "MetadataStore",
    "ParsedEntry",
    "SourceReport",
    "SourceStatus",
    "StoreEntry",
    "StoreHost",
    "SyncEngine",
    "SyncRunReport",
    "TransformContext",
    "apply_transforms",
    "build_transform",
    "cleanup_to_json",
    "dry_run_to_json",
    "format_cleanup_report",
    "format_dry_run_report",
    "format_sync_report",
    "report_to_json",
]
