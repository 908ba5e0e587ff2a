"""Entry id and destination path resolution.

Pure functions mapping a remote path plus per-source options to a stable
entry id and a local destination path:

1. **Path mapping** -- exact-file or folder renames are applied to the
   remote path first (``apply_path_mapping``).
2. **Id** -- the destination without its extension: extension dropped,
   ``replace`` removed once, the source root swapped for ``base_path``.
   A bare repository root maps to ``index``.
3. **Destination** -- the id plus the original extension.

Ids are unique per destination, so sources that mirror the same remote
layout into different ``base_path`` values never share an id (or a cache
record).
"""

from __future__ import annotations

from posixpath import splitext
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config_schema import SourceConfig

ROOT_ID = "index"


def _strip_extension(path: str) -> str:
    head, _, name = path.rpartition("/")
    stem, ext = splitext(name)
    if not ext or not stem:
        return path
    return f"{head}/{stem}" if head else stem


def file_extension(path: str) -> str:
    """Return the lower-cased extension of *path* (``""`` when none)."""
    name = path.rsplit("/", 1)[-1]
    stem, ext = splitext(name)
    return ext.lower() if stem else ""


def apply_path_mapping(path: str, source: SourceConfig) -> str:
    """Apply the source's rename rules to a remote *path*.

    An exact key match wins; otherwise the first folder key (ending in
    ``/``) that prefixes *path* has that prefix replaced.

    Args:
        path: Remote path (e.g. ``"docs/README.md"``).
        source: Source whose ``path_mappings`` apply.

    Returns:
        The mapped path, or *path* unchanged when no rule matches.
    """
    mappings = source.path_mappings
    if not mappings:
        return path

    if path in mappings:
        return mappings[path].strip("/")

    for key, target in mappings.items():
        if key.endswith("/") and path.startswith(key):
            rest = path[len(key) :]
            target = target.strip("/")
            return f"{target}/{rest}" if target else rest

    return path


def _relative_id(source: SourceConfig, path: str) -> str:
    raw = path.strip("/")
    if not raw:
        return ROOT_ID

    entry_id = _strip_extension(raw)
    if source.replace:
        entry_id = entry_id.replace(source.replace, "", 1)
    entry_id = entry_id.strip("/")
    return entry_id or ROOT_ID


def _residual(source: SourceConfig, entry_id: str) -> str:
    root = _strip_extension(source.path.strip("/"))
    if source.replace:
        root = root.replace(source.replace, "", 1).strip("/")
    if not root:
        return entry_id
    if entry_id == root:
        # Root path is itself a file
        return entry_id.rsplit("/", 1)[-1]
    if entry_id.startswith(root + "/"):
        return entry_id[len(root) + 1 :]
    return entry_id


def _base(source: SourceConfig) -> str:
    return source.base_path.strip().rstrip("/")


def generate_id(source: SourceConfig, path: str | None = None) -> str:
    """Derive the stable entry id for the remote file *path*.

    The id is the file's local destination without its extension:
    ``base_path`` joined with the path below the source root, after
    ``replace`` has been removed once.  Two sources mirroring the same
    remote path into different ``base_path`` values therefore get
    distinct ids.

    Args:
        source: Source providing ``path``, ``base_path`` and ``replace``.
        path: Remote path of a file, after ``apply_path_mapping``.
            ``None`` gives the id of the source's destination root.

    Returns:
        The id.  ``"index"`` stands for the repository root when the
        source has no ``base_path``.
    """
    base = _base(source)
    if path is None:
        return base or ROOT_ID

    residual = _residual(source, _relative_id(source, path))
    return f"{base}/{residual}" if base else residual


def generate_path(
    source: SourceConfig,
    entry_id: str | None = None,
    extension: str = ".md",
) -> str:
    """Derive the local destination path.

    With *entry_id* the id's path below ``base_path`` plus *extension* is
    appended to ``base_path``; without one, ``base_path`` itself is
    returned.

    Returns:
        The destination, or ``""`` when none can be determined (callers
        skip the entry).
    """
    base = _base(source)
    if entry_id is None:
        return base

    residual = entry_id.strip("/")
    if base and residual.startswith(base + "/"):
        residual = residual[len(base) + 1 :]
    elif residual == base:
        residual = ""
    if not residual:
        return ""
    relative = f"{residual}{extension}"
    return f"{base}/{relative}" if base else relative
