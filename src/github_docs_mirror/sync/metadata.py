"""Engine-private metadata persistence.

Holds two kinds of records, keyed independently of the host content
store:

* **cache** -- entry id -> ``{"etag": ..., "last_modified": ...}`` HTTP
  validators used for conditional fetches.
* **watermarks** -- source key -> ``{"last_synced_sha": ...,
  "synced_at": ...}`` recorded after a source imports without a fatal
  error.

``MetadataStore`` keeps everything in memory; ``JsonMetadataStore`` adds
persistence to ``<state_dir>/metadata.json``.  The engine loads the store
once per run and calls ``flush()`` after each source.

Key design choices:

* **Atomic writes** -- ``flush()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Dict-based records** -- records are plain dicts so the file stays
  readable and forward compatible.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

METADATA_VERSION = 1
METADATA_FILENAME = "metadata.json"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MetadataStore:
    """In-memory metadata store."""

    def __init__(self, data: dict | None = None) -> None:
        data = data or {}
        self._cache: dict[str, dict] = dict(data.get("cache", {}))
        self._watermarks: dict[str, dict] = dict(
            data.get("watermarks", {})
        )
        self._dirty = False

    # ------------------------------------------------------------------
    # Cache records
    # ------------------------------------------------------------------

    def get_cache(self, entry_id: str) -> dict | None:
        """Return the validator record for *entry_id*, or ``None``."""
        return self._cache.get(entry_id)

    def set_cache(self, entry_id: str, record: dict) -> None:
        """Replace the validator record for *entry_id*."""
        self._cache[entry_id] = dict(record)
        self._dirty = True

    def delete_cache(self, entry_id: str) -> None:
        """Drop the validator record for *entry_id*. No-op if absent."""
        if self._cache.pop(entry_id, None) is not None:
            self._dirty = True

    # ------------------------------------------------------------------
    # Watermarks
    # ------------------------------------------------------------------

    def get_watermark(self, source_key: str) -> dict | None:
        return self._watermarks.get(source_key)

    def set_watermark(
        self, source_key: str, sha: str, synced_at: str | None = None
    ) -> None:
        self._watermarks[source_key] = {
            "last_synced_sha": sha,
            "synced_at": synced_at or _utc_now(),
        }
        self._dirty = True

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self._dirty

    def to_dict(self) -> dict:
        return {
            "version": METADATA_VERSION,
            "cache": dict(self._cache),
            "watermarks": dict(self._watermarks),
        }

    def flush(self) -> None:
        """Persist pending changes (no-op for the in-memory store)."""
        self._dirty = False


class JsonMetadataStore(MetadataStore):
    """Metadata store persisted as JSON under *state_dir*.

    Args:
        state_dir: Directory holding ``metadata.json`` (created on first
            flush).
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = Path(state_dir)
        super().__init__(self._read())

    @property
    def path(self) -> Path:
        return self._state_dir / METADATA_FILENAME

    def _read(self) -> dict:
        path = self.path
        if not path.exists():
            return {}
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring malformed metadata file %s (root is %s)",
                path,
                type(data).__name__,
            )
            return {}
        return data

    def flush(self) -> None:
        """Write the metadata file atomically when anything changed."""
        if not self.dirty:
            return

        self._state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._state_dir), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.to_dict(), fh, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug("Flushed metadata to %s", self.path)
        super().flush()
