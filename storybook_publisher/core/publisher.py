"""Per-commit metadata and index publishing.

The metadata record lives at ``commits/metadata-<commit>.json`` rather than
inside ``commits/<commit>/`` so that every historical run can be found with
a single prefix listing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from storybook_publisher.core.object_store import ObjectStore
from storybook_publisher.models.builds import BuildOutput, PublishedCommit
from storybook_publisher.models.commit import CommitMetadata
from storybook_publisher.render.html import render_commit_index

logger = logging.getLogger(__name__)

METADATA_PREFIX = "commits/metadata-"
SITE_INDEX_KEY = "index.html"


def commit_base_path(commit: str) -> str:
    return f"commits/{commit}"


def metadata_key(commit: str) -> str:
    return f"{METADATA_PREFIX}{commit}.json"


def commit_index_key(commit: str) -> str:
    return f"{commit_base_path(commit)}/index.html"


def build_prefix(commit: str, build: BuildOutput) -> str:
    """Remote prefix a build's files are uploaded under."""
    return f"{commit_base_path(commit)}/{build.name}"


class MetadataPublisher:
    """Writes the JSON record and HTML index for one commit."""

    def __init__(self, store: ObjectStore) -> None:
        self.store = store

    def publish(
        self, metadata: CommitMetadata, builds: Sequence[BuildOutput]
    ) -> PublishedCommit:
        """Write the metadata record, then the commit index page.

        The two writes are independent: if the index write fails the
        metadata record stays in place.
        """
        commit = metadata.commit
        json_key = metadata_key(commit)
        index_key = commit_index_key(commit)

        self.store.put(json_key, metadata.to_json().encode("utf-8"), "application/json")
        logger.debug("Published %s", json_key)

        html = render_commit_index(metadata, builds)
        self.store.put(index_key, html.encode("utf-8"), "text/html")
        logger.debug("Published %s", index_key)

        return PublishedCommit(
            commit=commit,
            metadata_key=json_key,
            index_key=index_key,
            base_path=commit_base_path(commit),
        )
