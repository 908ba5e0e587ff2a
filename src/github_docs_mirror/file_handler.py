"""File handler module: root containment, encoding-aware decode, atomic writes.

Every write into the local mirror goes through ``write_bytes_atomic`` so
that an interrupted run never leaves a half-written file behind.
"""

import logging
import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

# =============================================================================
# Path Validation
# =============================================================================


def ensure_within_root(path: str | Path, root: str | Path) -> Path:
    """Resolve *path* against *root* and check it stays inside *root*.

    Args:
        path: Relative (to *root*) or absolute path.
        root: Project root directory.

    Returns:
        Resolved absolute Path.

    Raises:
        ValueError: If the resolved path escapes *root*.
    """
    root_resolved = Path(root).resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = root_resolved / candidate
    resolved = candidate.resolve()
    if not resolved.is_relative_to(root_resolved):
        raise ValueError(
            f"Path is outside project root: {resolved} not under {root_resolved}"
        )
    return resolved


# =============================================================================
# Decoding
# =============================================================================


def decode_content(raw: bytes) -> tuple[str, str]:
    """Decode fetched bytes with automatic encoding detection.

    Defaults to UTF-8 for empty input or when detection fails.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")
    logger.debug("Detected non-UTF-8 encoding %s", result.encoding)
    return (str(result), result.encoding)


# =============================================================================
# Atomic Writes
# =============================================================================


def write_bytes_atomic(path: Path, data: bytes) -> int:
    """Write *data* to *path* via temp file and rename.

    Parent directories are created as needed.  The temp file lives in the
    destination directory so ``os.replace`` stays on one filesystem.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, str(path))
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    return len(data)


def write_text_atomic(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Encode *content* and write it atomically. Returns bytes written."""
    return write_bytes_atomic(path, content.encode(encoding))
