"""Command-line entry point for github-docs-mirror.

Subcommands:
    sync      Import every enabled source into the content store.
    dry-run   Report which sources changed upstream since their last sync.
    cleanup   Remove stored entries that no longer exist upstream.
    init      Write a starter config file if none exists.

Reports go to stdout (text, or JSON with ``--json``); logs go to stderr.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .core.client import GitHubClient
from .errors import MirrorError, SyncCancelled
from .logger import setup_logging
from .sync import (
    JsonContentStore,
    JsonMetadataStore,
    StoreHost,
    SyncEngine,
    cleanup_to_json,
    dry_run_to_json,
    format_cleanup_report,
    format_dry_run_report,
    format_sync_report,
    report_to_json,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_SETUP_ERROR = 1
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="github-docs-mirror",
        description="Mirror documentation subtrees of GitHub repositories "
        "into a local content store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a starter config in ./.github_docs_mirror/config.yml
  github-docs-mirror init

  # Preview which sources changed since the last sync
  github-docs-mirror dry-run

  # Preview with the list of changed files per source
  github-docs-mirror dry-run --inspect

  # Import everything, replacing entries that already exist
  github-docs-mirror sync --clear

  # Use an explicit config file and emit a JSON report
  github-docs-mirror --config docs-mirror.yml --json sync

  # Remove entries whose upstream files were deleted
  github-docs-mirror cleanup

Note: Reports are written to stdout, logs to stderr.
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Config file to load (skips discovery; takes precedence over "
        "GITHUB_DOCS_MIRROR_CONFIG)",
    )
    parser.add_argument(
        "--token",
        help="Override GitHub token (takes precedence over GITHUB_TOKEN env var "
        "and config files)",
    )
    parser.add_argument(
        "--state-dir",
        help="Override the metadata directory (takes precedence over "
        "MIRROR_STATE_DIR env var and config files)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"github-docs-mirror version {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser(
        "sync", help="Import every enabled source"
    )
    sync_parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete and re-insert entries that already exist in the store",
    )

    dry_run_parser = subparsers.add_parser(
        "dry-run", help="Report which sources changed upstream"
    )
    dry_run_parser.add_argument(
        "--inspect",
        action="store_true",
        help="List added, modified and removed files per changed source",
    )

    subparsers.add_parser(
        "cleanup", help="Remove entries that no longer exist upstream"
    )
    subparsers.add_parser("init", help="Write a starter config file")

    return parser


def _yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the ``github`` and ``sync`` sections for ``load_config``."""
    fallbacks = unified.github.model_dump(exclude_none=True)
    fallbacks["delay_between_sources"] = unified.sync.delay_between_sources
    fallbacks["state_dir"] = unified.sync.state_dir
    return fallbacks


def build_engine(
    unified: UnifiedConfig,
    args: argparse.Namespace,
    cancel_event: threading.Event | None = None,
) -> SyncEngine:
    """Wire client, stores and settings for one CLI invocation.

    Raises:
        ValueError: If the connection settings are invalid.
        ConfigurationError: If the client cannot be created.
    """
    config = load_config(
        token=args.token,
        debug=args.debug,
        state_dir=args.state_dir,
        yaml_fallbacks=_yaml_fallbacks(unified),
    )

    settings = unified.sync.model_copy(
        update={
            "state_dir": config.state_dir,
            "delay_between_sources": config.delay_between_sources,
        }
    )
    if getattr(args, "clear", False):
        settings = settings.model_copy(update={"clear": True})

    state_dir = Path(config.state_dir)
    store_file = (
        Path(settings.store_file)
        if settings.store_file
        else state_dir / "store.json"
    )

    host = StoreHost(
        store=JsonContentStore(store_file),
        project_root=Path(settings.project_root).resolve(),
    )
    return SyncEngine(
        client=GitHubClient(config),
        sources=unified.sources,
        host=host,
        metadata=JsonMetadataStore(state_dir),
        settings=settings,
        cancel_event=cancel_event,
    )


def _emit(payload: str | dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, indent=2, default=str))
    else:
        print(payload)


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the requested command and return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    if args.command == "init":
        setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
        path = ensure_config(args.config)
        print(path)
        return EXIT_OK

    try:
        unified = build_config(load_hierarchical_config(args.config))
    except (
        FileNotFoundError,
        ValidationError,
        ValueError,
        yaml.YAMLError,
    ) as e:
        setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
        logger.error("Invalid configuration: %s", e)
        return EXIT_SETUP_ERROR

    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        debug_format=unified.logging.format,
        level=unified.logging.level,
    )

    if not unified.sources:
        logger.error(
            "No sources configured; add a 'sources' list to the config file"
        )
        return EXIT_SETUP_ERROR

    cancel_event = threading.Event()
    try:
        engine = build_engine(unified, args, cancel_event)
    except (ValueError, MirrorError) as e:
        logger.error("Setup failed: %s", e)
        return EXIT_SETUP_ERROR

    try:
        if args.command == "sync":
            report = engine.run()
            _emit(
                report_to_json(report)
                if args.json
                else format_sync_report(report),
                args.json,
            )
        elif args.command == "dry-run":
            preview = engine.dry_run(inspect=args.inspect)
            _emit(
                dry_run_to_json(preview)
                if args.json
                else format_dry_run_report(preview),
                args.json,
            )
        elif args.command == "cleanup":
            reports = engine.run_cleanup()
            _emit(
                cleanup_to_json(reports)
                if args.json
                else format_cleanup_report(reports),
                args.json,
            )
    except KeyboardInterrupt:
        cancel_event.set()
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except SyncCancelled:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED

    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
