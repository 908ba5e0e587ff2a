"""Tests for conditional-request header helpers."""

from __future__ import annotations

from github_docs_mirror.sync.cache import get_headers, sync_headers
from github_docs_mirror.sync.metadata import MetadataStore


class TestGetHeaders:
    def test_no_record_returns_init(self):
        cache = MetadataStore()
        assert get_headers({"Accept": "x"}, cache, "docs/a") == {"Accept": "x"}
        assert get_headers(None, cache, "docs/a") == {}

    def test_etag_and_last_modified(self):
        cache = MetadataStore()
        cache.set_cache(
            "docs/a", {"etag": '"v1"', "last_modified": "Mon, 01 Jan 2026 00:00:00 GMT"}
        )
        headers = get_headers({"Accept": "x"}, cache, "docs/a")
        assert headers == {
            "Accept": "x",
            "If-None-Match": '"v1"',
            "If-Modified-Since": "Mon, 01 Jan 2026 00:00:00 GMT",
        }

    def test_etag_only(self):
        cache = MetadataStore()
        cache.set_cache("docs/a", {"etag": '"v1"'})
        assert get_headers(None, cache, "docs/a") == {"If-None-Match": '"v1"'}

    def test_init_not_mutated(self):
        cache = MetadataStore()
        cache.set_cache("docs/a", {"etag": '"v1"'})
        init = {"Accept": "x"}
        get_headers(init, cache, "docs/a")
        assert init == {"Accept": "x"}


class TestSyncHeaders:
    def test_records_both_validators(self):
        cache = MetadataStore()
        assert sync_headers(
            {"ETag": '"v2"', "Last-Modified": "Tue"}, cache, "docs/a"
        )
        assert cache.get_cache("docs/a") == {"etag": '"v2"', "last_modified": "Tue"}

    def test_case_insensitive(self):
        cache = MetadataStore()
        sync_headers({"etag": '"v2"'}, cache, "docs/a")
        assert cache.get_cache("docs/a") == {"etag": '"v2"'}

    def test_overwrites_previous_record(self):
        cache = MetadataStore()
        cache.set_cache("docs/a", {"etag": '"v1"', "last_modified": "Mon"})
        sync_headers({"ETag": '"v2"'}, cache, "docs/a")
        assert cache.get_cache("docs/a") == {"etag": '"v2"'}

    def test_no_validators_keeps_record(self):
        cache = MetadataStore()
        cache.set_cache("docs/a", {"etag": '"v1"'})
        assert not sync_headers({"Content-Type": "text/plain"}, cache, "docs/a")
        assert cache.get_cache("docs/a") == {"etag": '"v1"'}

    def test_round_trip_into_request(self):
        cache = MetadataStore()
        sync_headers({"ETag": '"v3"'}, cache, "docs/a")
        assert get_headers(None, cache, "docs/a")["If-None-Match"] == '"v3"'
