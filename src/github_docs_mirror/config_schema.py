"""Unified configuration schema for github_docs_mirror.

Defines Pydantic models for the unified config structure with dedicated
sections for the GitHub connection, logging, sync behaviour and the list
of mirrored sources.

Usage:
    from github_docs_mirror.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable

from pydantic import BaseModel, Field, field_validator

from .validators import (
    validate_owner,
    validate_ref,
    validate_repo_name,
    validate_repo_path,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """GitHub connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    api_url: str | None = Field(
        default=None, description="GitHub REST API base URL"
    )
    token: str | None = Field(
        default=None, description="Personal access token"
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Read timeout for API calls in seconds",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: "text" or "json".
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", description="text or json")

    model_config = {"frozen": True}


class SyncSettings(BaseModel):
    """Run-wide sync behaviour."""

    clear: bool = Field(
        default=False,
        description="Delete-then-insert entries that already exist in the store",
    )
    delay_between_sources: float = Field(
        default=1.0,
        ge=0,
        description="Seconds to wait before each source after the first",
    )
    state_dir: str = Field(
        default=".github_docs_mirror",
        description="Directory holding cache and watermark metadata",
    )
    store_file: str | None = Field(
        default=None,
        description="JSON content store path (default: <state_dir>/store.json)",
    )
    project_root: str = Field(
        default=".",
        description="Root that all mirrored files must stay inside",
    )
    skip_unchanged: bool = Field(
        default=False,
        description="Skip sources whose watermark matches the latest commit",
    )

    model_config = {"frozen": True}


class LinkMappingRule(BaseModel):
    """One link-rewriting rule.

    ``pattern`` is a regular expression (or compiled pattern).
    ``replacement`` is either a ``re.sub`` replacement string or a callable
    ``(path, anchor, context) -> str``.  Global rules apply to every
    relative link; non-global rules only to links that stay unresolved
    after matching against the source's own files.
    """

    pattern: str | re.Pattern
    replacement: str | Callable[..., str]
    global_: bool = Field(default=False, alias="global")
    description: str | None = None

    model_config = {"frozen": True, "populate_by_name": True}

    @property
    def regex(self) -> re.Pattern:
        if isinstance(self.pattern, re.Pattern):
            return self.pattern
        return re.compile(self.pattern)


class LinkRewriteConfig(BaseModel):
    """Link rewriting options for one source."""

    strip_prefixes: list[str] = Field(
        default_factory=lambda: ["src/content/docs"],
        description="Destination prefixes removed when building site URLs",
    )
    mappings: list[LinkMappingRule] = Field(default_factory=list)

    model_config = {"frozen": True}


class SourceConfig(BaseModel):
    """One remote subtree to mirror.

    Attributes:
        owner: Repository owner.
        repo: Repository name.
        ref: Branch, tag or commit sha.
        path: Root path inside the repository ("" for the repo root).
        base_path: Local destination base directory.
        name: Display name used in logs and reports.
        enabled: Disabled sources are skipped by every run mode.
        replace: Exact substring removed once from generated ids.
        clear: Per-source override of ``sync.clear``.
        transforms: Ordered transform functions (or config specs that
            resolve to built-in transforms).
        path_mappings: Exact-file or folder (trailing ``/``) renames.
        asset_patterns: Asset extension allowlist.
        assets_path: Explicit local asset directory.
        assets_base_url: Explicit URL prefix for rewritten asset links.
        links: Link rewriting options; ``None`` leaves links alone.
        includes: Glob patterns (matched against the remote path) a file
            must match to be imported; empty imports every file.
        cleanup: Run selective cleanup after a successful import.
    """

    owner: str
    repo: str
    ref: str = "main"
    path: str = ""
    base_path: str
    name: str | None = None
    enabled: bool = True
    replace: str | None = None
    clear: bool | None = None
    transforms: list[Callable[..., str]] = Field(default_factory=list)
    path_mappings: dict[str, str] = Field(default_factory=dict)
    asset_patterns: list[str] | None = None
    assets_path: str | None = None
    assets_base_url: str | None = None
    links: LinkRewriteConfig | None = None
    includes: list[str] = Field(default_factory=list)
    cleanup: bool = True

    model_config = {"frozen": True}

    @field_validator("owner")
    @classmethod
    def _check_owner(cls, value: str) -> str:
        ok, msg = validate_owner(value)
        if not ok:
            raise ValueError(msg)
        return value

    @field_validator("repo")
    @classmethod
    def _check_repo(cls, value: str) -> str:
        ok, msg = validate_repo_name(value)
        if not ok:
            raise ValueError(msg)
        return value

    @field_validator("ref")
    @classmethod
    def _check_ref(cls, value: str) -> str:
        ok, msg = validate_ref(value)
        if not ok:
            raise ValueError(msg)
        return value

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str) -> str:
        value = value.strip().strip("/")
        ok, msg = validate_repo_path(value)
        if not ok:
            raise ValueError(msg)
        return value

    @field_validator("base_path")
    @classmethod
    def _check_base_path(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("asset_patterns")
    @classmethod
    def _normalise_asset_patterns(
        cls, value: list[str] | None
    ) -> list[str] | None:
        if value is None:
            return None
        return [
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in value
        ]

    @field_validator("transforms", mode="before")
    @classmethod
    def _resolve_transforms(cls, value: Any) -> Any:
        if value is None:
            return []
        # Import here to avoid circular imports (transforms references
        # SourceConfig for type hints only)
        from .sync.transforms import build_transform

        return [
            item if callable(item) else build_transform(item)
            for item in value
        ]

    @property
    def display_name(self) -> str:
        """Name used in logs: ``name`` or ``owner/repo``."""
        return self.name or f"{self.owner}/{self.repo}"

    @property
    def source_key(self) -> str:
        """Stable identity used to key the source's watermark."""
        key = f"{self.owner}/{self.repo}@{self.ref}"
        if self.path:
            key += f":{self.path}"
        return key


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    sources: list[SourceConfig] = Field(default_factory=list)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
