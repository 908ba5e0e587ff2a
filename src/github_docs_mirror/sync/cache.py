"""Conditional-request helpers backed by the metadata store."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from .metadata import MetadataStore

logger = logging.getLogger(__name__)


def get_headers(
    init: Mapping[str, str] | None,
    cache: MetadataStore,
    entry_id: str,
) -> dict[str, str]:
    """Merge *init* with the stored validators for *entry_id*.

    ``etag`` becomes ``If-None-Match`` and ``last_modified`` becomes
    ``If-Modified-Since``.  Without a cache record the result equals
    *init*.
    """
    headers = dict(init or {})
    record = cache.get_cache(entry_id)
    if not record:
        return headers

    if record.get("etag"):
        headers["If-None-Match"] = record["etag"]
    if record.get("last_modified"):
        headers["If-Modified-Since"] = record["last_modified"]
    return headers


def sync_headers(
    headers: Mapping[str, str],
    cache: MetadataStore,
    entry_id: str,
) -> bool:
    """Record ``ETag``/``Last-Modified`` from a response for *entry_id*.

    The previous record is overwritten.  A response carrying neither
    header leaves any existing record alone.

    Returns:
        True if a record was written.
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    etag = lowered.get("etag")
    last_modified = lowered.get("last-modified")
    if not etag and not last_modified:
        return False

    record: dict[str, str] = {}
    if etag:
        record["etag"] = etag
    if last_modified:
        record["last_modified"] = last_modified
    cache.set_cache(entry_id, record)
    logger.debug("Cached validators for %s: %s", entry_id, record)
    return True
