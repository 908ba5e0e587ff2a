"""Binary asset detection, download and reference rewriting.

Assets referenced from Markdown image syntax or HTML ``<img>`` tags are
downloaded once into the source's asset directory and their references
rewritten to point at the local copy.  Local filenames are derived from
the resolved remote path (``<stem>-<hash8><ext>``) so a re-run finds the
file already present and skips the download.
"""

from __future__ import annotations

import hashlib
import logging
import posixpath
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import MirrorError, SyncCancelled, raise_if_cancelled
from ..file_handler import write_bytes_atomic

if TYPE_CHECKING:
    from ..config_schema import SourceConfig
    from ..core.client import GitHubClient

logger = logging.getLogger(__name__)

DEFAULT_ASSET_PATTERNS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".webp",
    ".ico",
    ".bmp",
)

_MD_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*([^)\s]+)(?:\s+\"[^\"]*\")?\s*\)")
_HTML_IMG_RE = re.compile(
    r"<img[^>]+src\s*=\s*[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE
)


@dataclass(frozen=True)
class AssetConfig:
    """Where assets of a source land and how they are referenced.

    Attributes:
        assets_path: Local directory for downloaded assets.
        base_url: URL prefix used in rewritten references.
        colocated: True when both values are the derived defaults; the
            reference is then made relative to each referencing file.
    """

    assets_path: str
    base_url: str
    colocated: bool = False


@dataclass(frozen=True)
class AssetResult:
    content: str
    downloaded: int = 0
    cached: int = 0


def _is_relative_reference(ref: str) -> bool:
    return not (
        "://" in ref
        or ref.startswith(("/", "#", "data:", "mailto:"))
    )


def detect_assets(
    content: str, asset_patterns: list[str] | tuple[str, ...] | None = None
) -> list[str]:
    """Return relative asset references in first-seen order, de-duplicated.

    Args:
        content: Markdown content to scan.
        asset_patterns: Extension allowlist (default
            ``DEFAULT_ASSET_PATTERNS``).
    """
    patterns = {
        p.lower() for p in (asset_patterns or DEFAULT_ASSET_PATTERNS)
    }
    found: list[tuple[int, str]] = []
    for regex in (_MD_IMAGE_RE, _HTML_IMG_RE):
        for match in regex.finditer(content):
            found.append((match.start(), match.group(1)))

    assets: list[str] = []
    for _, ref in sorted(found):
        if ref in assets or not _is_relative_reference(ref):
            continue
        path_part = ref.split("#", 1)[0].split("?", 1)[0]
        if posixpath.splitext(path_part)[1].lower() in patterns:
            assets.append(ref)
    return assets


def resolve_asset_path(file_path: str, asset_path: str) -> str:
    """Resolve *asset_path* (as written in *file_path*) to a repository path."""
    resolved = posixpath.normpath(
        posixpath.join(posixpath.dirname(file_path), asset_path)
    )
    return resolved.lstrip("/")


def resolve_asset_config(source: SourceConfig) -> AssetConfig | None:
    """Decide where the source's assets go.

    Explicit ``assets_path`` plus ``assets_base_url`` are used as given.
    When neither is set, assets are co-located under
    ``<base_path>/assets``.  Setting only one of them disables asset
    handling for the source.
    """
    if source.assets_path and source.assets_base_url:
        return AssetConfig(
            assets_path=source.assets_path.rstrip("/"),
            base_url=source.assets_base_url.rstrip("/"),
        )
    if source.assets_path or source.assets_base_url:
        logger.warning(
            "Asset handling disabled for %s: assets_path and "
            "assets_base_url must be set together",
            source.display_name,
        )
        return None
    if not source.base_path:
        return None
    return AssetConfig(
        assets_path=f"{source.base_path}/assets",
        base_url="./assets",
        colocated=True,
    )


def local_asset_name(resolved_path: str) -> str:
    """Deterministic local filename for a remote asset path."""
    name = posixpath.basename(resolved_path)
    stem, ext = posixpath.splitext(name)
    digest = hashlib.sha256(resolved_path.encode("utf-8")).hexdigest()[:8]
    return f"{stem}-{digest}{ext}"


def download_asset(
    client: GitHubClient,
    owner: str,
    repo: str,
    ref: str,
    asset_path: str,
    local_path: Path,
    cancel_event: threading.Event | None = None,
) -> bool:
    """Download one asset unless *local_path* already exists.

    Returns:
        True if the asset was fetched, False if it was already present.

    Raises:
        SyncCancelled: If *cancel_event* is set.
        TransportError: If the fetch fails.
    """
    if local_path.exists():
        return False
    raise_if_cancelled(cancel_event)
    result = client.fetch_blob(owner, repo, ref, asset_path)
    write_bytes_atomic(local_path, result.content)
    logger.debug("Downloaded asset %s -> %s", asset_path, local_path)
    return True


def transform_asset_references(
    content: str, asset_map: dict[str, str]
) -> str:
    """Rewrite references listed in *asset_map*; leave all others alone."""
    for original, replacement in asset_map.items():
        escaped = re.escape(original)
        content = re.sub(
            rf"(!\[[^\]]*\]\(\s*){escaped}((?:\s+\"[^\"]*\")?\s*\))",
            lambda m: f"{m.group(1)}{replacement}{m.group(2)}",
            content,
        )
        content = re.sub(
            rf"(<img[^>]+src\s*=\s*[\"']){escaped}([\"'][^>]*>)",
            lambda m: f"{m.group(1)}{replacement}{m.group(2)}",
            content,
            flags=re.IGNORECASE,
        )
    return content


def _reference_url(config: AssetConfig, file_path: str, name: str) -> str:
    if not config.colocated:
        return f"{config.base_url}/{name}"
    rel = posixpath.relpath(
        config.assets_path, posixpath.dirname(file_path) or "."
    )
    if not rel.startswith("."):
        rel = f"./{rel}"
    return f"{rel}/{name}"


def process_assets(
    client: GitHubClient,
    source: SourceConfig,
    content: str,
    remote_path: str,
    file_path: str,
    project_root: Path,
    cancel_event: threading.Event | None = None,
) -> AssetResult:
    """Download the assets referenced by one file and rewrite references.

    A failed download is logged and its reference left untouched; the
    file itself still imports.

    Args:
        client: GitHub transport.
        source: Source being imported.
        content: Transformed file content.
        remote_path: Remote path of the file (relative references are
            resolved against it).
        file_path: Local destination of the file.
        project_root: Root that asset paths are relative to.
        cancel_event: Checked before each download.
    """
    config = resolve_asset_config(source)
    if config is None:
        return AssetResult(content=content)

    detected = detect_assets(content, source.asset_patterns)
    if not detected:
        return AssetResult(content=content)
    logger.debug(
        "Detected %d asset(s) in %s", len(detected), remote_path
    )

    asset_map: dict[str, str] = {}
    downloaded = cached = 0
    for ref in detected:
        resolved = resolve_asset_path(remote_path, ref)
        name = local_asset_name(resolved)
        local_path = project_root / config.assets_path / name
        try:
            if download_asset(
                client,
                source.owner,
                source.repo,
                source.ref,
                resolved,
                local_path,
                cancel_event,
            ):
                downloaded += 1
            else:
                cached += 1
        except SyncCancelled:
            raise
        except (MirrorError, OSError) as exc:
            logger.warning(
                "Failed to download asset %s referenced from %s (%s/%s): %s",
                resolved,
                remote_path,
                source.owner,
                source.repo,
                exc,
            )
            continue
        asset_map[ref] = _reference_url(config, file_path, name)

    return AssetResult(
        content=transform_asset_references(content, asset_map),
        downloaded=downloaded,
        cached=cached,
    )
