"""Tests for per-commit metadata and index publishing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from storybook_publisher.core.publisher import (
    MetadataPublisher,
    build_prefix,
    commit_base_path,
    commit_index_key,
    metadata_key,
)
from storybook_publisher.models.builds import BuildOutput
from storybook_publisher.models.commit import CommitMetadata


@pytest.fixture
def builds(tmp_dir: Path) -> list[BuildOutput]:
    return [
        BuildOutput(path=tmp_dir / "pkg-a" / "storybook-static"),
        BuildOutput(path=tmp_dir / "pkg-b" / "storybook-static"),
    ]


class TestKeys:
    def test_layout(self):
        assert commit_base_path("abc") == "commits/abc"
        assert metadata_key("abc") == "commits/metadata-abc.json"
        assert commit_index_key("abc") == "commits/abc/index.html"

    def test_build_prefix(self, tmp_dir):
        build = BuildOutput(path=tmp_dir / "pkg-a" / "storybook-static")
        assert build_prefix("abc", build) == "commits/abc/pkg-a"


class TestMetadataPublisher:
    def test_writes_json_then_html(self, memory_store, make_metadata, builds):
        published = MetadataPublisher(memory_store).publish(make_metadata("abc"), builds)

        assert memory_store.puts == ["commits/metadata-abc.json", "commits/abc/index.html"]
        assert published.metadata_key == "commits/metadata-abc.json"
        assert published.index_key == "commits/abc/index.html"
        assert published.base_path == "commits/abc"

    def test_content_types(self, memory_store, make_metadata, builds):
        MetadataPublisher(memory_store).publish(make_metadata("abc"), builds)
        assert memory_store.content_type("commits/metadata-abc.json") == "application/json"
        assert memory_store.content_type("commits/abc/index.html") == "text/html"

    def test_record_reads_back(self, memory_store, make_metadata, builds):
        meta = make_metadata("abc")
        MetadataPublisher(memory_store).publish(meta, builds)
        raw = memory_store.get("commits/metadata-abc.json")
        assert CommitMetadata.from_json(raw) == meta
        assert "pullRequestURL" in json.loads(raw)

    def test_index_links_every_build(self, memory_store, make_metadata, builds):
        MetadataPublisher(memory_store).publish(make_metadata("abc"), builds)
        html = memory_store.get("commits/abc/index.html").decode()
        assert 'href="./pkg-a/index.html"' in html
        assert 'href="./pkg-b/index.html"' in html

    def test_metadata_kept_when_index_write_fails(self, memory_store, make_metadata, builds):
        original_put = memory_store.put

        def failing_put(key, data, content_type="application/octet-stream"):
            if key.endswith("index.html"):
                raise OSError("disk full")
            return original_put(key, data, content_type)

        memory_store.put = failing_put
        with pytest.raises(OSError):
            MetadataPublisher(memory_store).publish(make_metadata("abc"), builds)
        assert "commits/metadata-abc.json" in memory_store.objects
