"""Tests for selective cleanup."""

import pytest

from github_docs_mirror.core.client import RemoteEntry
from github_docs_mirror.errors import CleanupError, TransportError
from github_docs_mirror.sync.cleanup import (
    cleanup_source,
    expected_ids,
    perform_selective_cleanup,
)
from github_docs_mirror.sync.store import ContentStore, StoreEntry

BASE = "src/content/docs/widgets"
KEEP = f"{BASE}/keep"
GONE = f"{BASE}/gone"


@pytest.fixture
def store():
    store = ContentStore()
    for entry_id, file_path in [
        (KEEP, f"{KEEP}.md"),
        (GONE, f"{GONE}.md"),
        ("src/content/docs/other/gone", "src/content/docs/other/gone.md"),
        (f"{BASE}-v2/sibling", f"{BASE}-v2/sibling.md"),
        ("inline", None),
    ]:
        store.set(StoreEntry(id=entry_id, digest="d", file_path=file_path))
    return store


def _touch(root, rel):
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("x")
    return path


class TestExpectedIds:
    def test_files_only(self, make_source):
        entries = [
            RemoteEntry(path="docs/a.md", type="file"),
            RemoteEntry(path="docs/sub", type="dir"),
            RemoteEntry(path="docs/sub/b.md", type="file"),
        ]
        assert expected_ids(make_source(), entries) == {
            f"{BASE}/a",
            f"{BASE}/sub/b",
        }

    def test_path_mappings_applied(self, make_source):
        source = make_source(path_mappings={"docs/README.md": "docs/index.md"})
        entries = [RemoteEntry(path="docs/README.md", type="file")]
        assert expected_ids(source, entries) == {f"{BASE}/index"}

    def test_scoped_by_destination(self, make_source):
        entries = [RemoteEntry(path="docs/index.md", type="file")]
        widgets = expected_ids(make_source(base_path="content/widgets"), entries)
        gadgets = expected_ids(make_source(base_path="content/gadgets"), entries)
        assert widgets.isdisjoint(gadgets)


class TestCleanupSource:
    def test_removes_only_under_prefix(self, make_source, store, tmp_path, metadata):
        gone = _touch(tmp_path, f"{GONE}.md")
        keep = _touch(tmp_path, f"{KEEP}.md")
        other = _touch(tmp_path, "src/content/docs/other/gone.md")
        metadata.set_cache(GONE, {"etag": '"x"'})
        metadata.set_cache(KEEP, {"etag": '"y"'})

        deleted = cleanup_source(make_source(), store, {KEEP}, tmp_path, metadata)

        assert deleted == [GONE]
        assert sorted(store.keys()) == [
            "inline",
            "src/content/docs/other/gone",
            f"{BASE}-v2/sibling",
            KEEP,
        ]
        assert not gone.exists()
        assert keep.exists()
        assert other.exists()
        assert metadata.get_cache(GONE) is None
        assert metadata.get_cache(KEEP) == {"etag": '"y"'}

    def test_missing_local_file_is_fine(self, make_source, store, tmp_path):
        assert cleanup_source(make_source(), store, {KEEP}, tmp_path) == [GONE]

    def test_nothing_stale(self, make_source, store, tmp_path):
        assert cleanup_source(make_source(), store, {KEEP, GONE}, tmp_path) == []
        assert len(store) == 5

    def test_empty_base_path_refused(self, make_source, store, tmp_path):
        with pytest.raises(CleanupError, match="no base_path"):
            cleanup_source(make_source(base_path=""), store, set(), tmp_path)
        assert len(store) == 5

    def test_escaping_path_deletes_nothing(self, make_source, store, tmp_path, metadata):
        escaping = f"{BASE}/{'../' * 6}outside.md"
        store.set(StoreEntry(id=f"{BASE}/outside", digest="d", file_path=escaping))
        metadata.set_cache(GONE, {"etag": '"x"'})

        with pytest.raises(CleanupError, match="outside project root"):
            cleanup_source(make_source(), store, {KEEP}, tmp_path, metadata)

        assert store.has(GONE)
        assert store.has(f"{BASE}/outside")
        assert metadata.get_cache(GONE) == {"etag": '"x"'}


class TestPerformSelectiveCleanup:
    def test_walks_and_cleans(self, fake_client, make_source, store, tmp_path):
        fake_client.add_file("acme", "widgets", "docs/keep.md", "k")

        deleted = perform_selective_cleanup(
            fake_client, make_source(), store, tmp_path
        )

        assert deleted == [GONE]
        assert fake_client.list_calls[0] == ("acme", "widgets", "main", "docs")

    def test_walk_failure_wrapped(self, fake_client, make_source, store, tmp_path):
        fake_client.failing_repos[("acme", "widgets")] = TransportError(
            "rate limited", status=403
        )
        with pytest.raises(CleanupError, match="Could not list"):
            perform_selective_cleanup(fake_client, make_source(), store, tmp_path)
        assert len(store) == 5

    def test_failed_subdirectory_deletes_nothing(self, fake_client, make_source, store, tmp_path):
        fake_client.add_file("acme", "widgets", "docs/keep.md", "k")
        fake_client.add_file("acme", "widgets", "docs/sub/page.md", "p")
        fake_client.failing_listings["docs/sub"] = TransportError(
            "502 Bad Gateway", status=502
        )

        with pytest.raises(CleanupError, match="Could not list"):
            perform_selective_cleanup(fake_client, make_source(), store, tmp_path)
        assert store.has(GONE)
