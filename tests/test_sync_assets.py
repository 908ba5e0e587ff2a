"""Tests for asset detection, download and reference rewriting."""

import logging
from unittest.mock import MagicMock

import pytest

from github_docs_mirror.errors import TransportError
from github_docs_mirror.sync.assets import (
    AssetConfig,
    detect_assets,
    download_asset,
    local_asset_name,
    process_assets,
    resolve_asset_config,
    resolve_asset_path,
    transform_asset_references,
)


# ---------------------------------------------------------------------------
# Detection and resolution
# ---------------------------------------------------------------------------


class TestDetectAssets:
    def test_markdown_and_html_in_document_order(self):
        content = (
            '<img src="img/first.svg" alt="x">\n'
            "![Second](img/second.png)\n"
            "![Again](img/second.png)\n"
        )
        assert detect_assets(content) == ["img/first.svg", "img/second.png"]

    def test_external_and_absolute_skipped(self):
        content = (
            "![a](https://example.com/a.png) ![b](/static/b.png) "
            "![c](data:image/png;base64,xx) ![d](d.png)"
        )
        assert detect_assets(content) == ["d.png"]

    def test_extension_filter(self):
        content = "![doc](file.pdf) ![pic](pic.JPG) ![q](q.png?raw=true)"
        assert detect_assets(content) == ["pic.JPG", "q.png?raw=true"]

    def test_custom_patterns(self):
        assert detect_assets("![doc](file.pdf) ![p](p.png)", [".pdf"]) == ["file.pdf"]

    def test_title_ignored(self):
        assert detect_assets('![a](a.png "Caption")') == ["a.png"]

    def test_links_are_not_assets(self):
        assert detect_assets("[download](a.png)") == []


class TestResolution:
    def test_resolve_relative(self):
        assert resolve_asset_path("docs/guide/intro.md", "../img/a.png") == "docs/img/a.png"
        assert resolve_asset_path("docs/intro.md", "./a.png") == "docs/a.png"

    def test_local_name_deterministic(self):
        name = local_asset_name("docs/img/logo.png")
        assert name == local_asset_name("docs/img/logo.png")
        assert name.startswith("logo-")
        assert name.endswith(".png")
        assert name != local_asset_name("other/img/logo.png")


class TestResolveAssetConfig:
    def test_colocated_default(self, make_source):
        config = resolve_asset_config(make_source())
        assert config == AssetConfig(
            assets_path="src/content/docs/widgets/assets",
            base_url="./assets",
            colocated=True,
        )

    def test_explicit(self, make_source):
        config = resolve_asset_config(
            make_source(assets_path="public/assets/", assets_base_url="/assets/")
        )
        assert config == AssetConfig(assets_path="public/assets", base_url="/assets")

    def test_only_one_set_disables(self, make_source, caplog):
        with caplog.at_level(logging.WARNING):
            assert resolve_asset_config(make_source(assets_path="public/a")) is None
        assert "must be set together" in caplog.text


# ---------------------------------------------------------------------------
# Download and rewrite
# ---------------------------------------------------------------------------


class TestDownloadAsset:
    def test_skips_existing(self, tmp_path):
        local = tmp_path / "a.png"
        local.write_bytes(b"old")
        client = MagicMock()

        assert download_asset(client, "acme", "widgets", "main", "a.png", local) is False
        client.fetch_blob.assert_not_called()

    def test_fetches_and_writes(self, tmp_path, fake_client):
        fake_client.add_file("acme", "widgets", "docs/a.png", b"\x89PNG")
        local = tmp_path / "assets" / "a.png"

        assert download_asset(fake_client, "acme", "widgets", "main", "docs/a.png", local)
        assert local.read_bytes() == b"\x89PNG"


class TestTransformAssetReferences:
    def test_only_mapped_rewritten(self):
        content = '![a](a.png "T") ![b](b.png) <img src="a.png" width="10">'
        result = transform_asset_references(content, {"a.png": "/assets/a-1.png"})
        assert result == (
            '![a](/assets/a-1.png "T") ![b](b.png) '
            '<img src="/assets/a-1.png" width="10">'
        )


class TestProcessAssets:
    @pytest.fixture
    def repo(self, fake_client):
        fake_client.add_file("acme", "widgets", "docs/img/logo.png", b"logo")
        return fake_client

    def test_colocated_reference_relative_to_file(self, repo, make_source, tmp_path):
        result = process_assets(
            repo,
            make_source(),
            "![Logo](../img/logo.png)",
            "docs/guide/intro.md",
            "src/content/docs/widgets/guide/intro.md",
            tmp_path,
        )
        name = local_asset_name("docs/img/logo.png")
        assert result.content == f"![Logo](../assets/{name})"
        assert result.downloaded == 1
        assert (tmp_path / "src/content/docs/widgets/assets" / name).read_bytes() == b"logo"

    def test_colocated_at_base_root(self, repo, make_source, tmp_path):
        result = process_assets(
            repo,
            make_source(),
            "![Logo](img/logo.png)",
            "docs/index.md",
            "src/content/docs/widgets/index.md",
            tmp_path,
        )
        assert result.content == f"![Logo](./assets/{local_asset_name('docs/img/logo.png')})"

    def test_explicit_base_url(self, repo, make_source, tmp_path):
        source = make_source(assets_path="public/assets", assets_base_url="/assets")
        result = process_assets(
            repo, source, "![L](img/logo.png)", "docs/index.md",
            "src/content/docs/widgets/index.md", tmp_path,
        )
        name = local_asset_name("docs/img/logo.png")
        assert result.content == f"![L](/assets/{name})"
        assert (tmp_path / "public/assets" / name).exists()

    def test_second_run_uses_cached_file(self, repo, make_source, tmp_path):
        args = ("![L](img/logo.png)", "docs/index.md", "src/content/docs/widgets/index.md", tmp_path)
        first = process_assets(repo, make_source(), *args)
        fetches = len(repo.fetch_calls)
        second = process_assets(repo, make_source(), *args)

        assert second.content == first.content
        assert second.cached == 1
        assert second.downloaded == 0
        assert len(repo.fetch_calls) == fetches

    def test_failed_download_leaves_reference(self, repo, make_source, tmp_path, caplog):
        repo.failing_paths["docs/img/broken.png"] = TransportError("boom", status=500)
        content = "![B](img/broken.png) ![L](img/logo.png)"
        with caplog.at_level(logging.WARNING):
            result = process_assets(
                repo, make_source(), content, "docs/index.md",
                "src/content/docs/widgets/index.md", tmp_path,
            )
        assert "![B](img/broken.png)" in result.content
        assert "![L](./assets/" in result.content
        assert result.downloaded == 1
        assert "Failed to download asset docs/img/broken.png" in caplog.text

    def test_no_assets_returns_content(self, repo, make_source, tmp_path):
        result = process_assets(
            repo, make_source(), "Just text", "docs/index.md",
            "src/content/docs/widgets/index.md", tmp_path,
        )
        assert result.content == "Just text"
        assert repo.fetch_calls == []
