"""Root site index rebuild.

The store is the only state shared between runs, so the index is rebuilt
from scratch every time: list the metadata records, keep the recent ones,
newest first, read them back, and overwrite ``index.html``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from storybook_publisher.core.object_store import ObjectNotFoundError, ObjectStore
from storybook_publisher.core.publisher import METADATA_PREFIX, SITE_INDEX_KEY
from storybook_publisher.models.commit import CommitMetadata
from storybook_publisher.models.site import SiteIndexView
from storybook_publisher.models.storage import StoredObject
from storybook_publisher.render.html import render_site_index

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def select_recent(
    objects: list[StoredObject],
    *,
    now: datetime,
    max_age: timedelta,
    limit: int,
) -> list[StoredObject]:
    """Drop objects older than *max_age*, sort newest first, keep *limit*."""
    cutoff = now - max_age
    recent = [obj for obj in objects if obj.created_at >= cutoff]
    recent.sort(key=lambda obj: obj.created_at, reverse=True)
    return recent[:limit]


class SiteIndexAggregator:
    """Rebuilds the root site index from stored commit metadata.

    Parameters
    ----------
    store:
        Object store holding the metadata records.
    max_age:
        Records created longer ago than this are left out.
    limit:
        Maximum number of commits in the index.
    main_branch / main_branch_items:
        Branch shown in the "latest" section and how many entries it shows.
    project_name / repo:
        Used in the page title.
    clock:
        Returns the current time; ``datetime.now(timezone.utc)`` by default.
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        max_age: timedelta = timedelta(days=30),
        limit: int = 25,
        main_branch: str = "main",
        main_branch_items: int = 3,
        project_name: str = "",
        repo: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.max_age = max_age
        self.limit = limit
        self.main_branch = main_branch
        self.main_branch_items = main_branch_items
        self.project_name = project_name
        self.repo = repo
        self._clock = clock

    def _load(self, obj: StoredObject) -> CommitMetadata | None:
        try:
            return CommitMetadata.from_json(self.store.get(obj.key))
        except ObjectNotFoundError:
            logger.warning("Commit metadata file %s vanished before it was read", obj.key)
        except (ValidationError, ValueError) as exc:
            logger.warning("Failure to parse commit metadata file %s: %s", obj.key, exc)
        return None

    def collect(self, now: datetime | None = None) -> SiteIndexView:
        """Assemble the bounded, newest-first list of recent commits."""
        now = now or self._clock()
        selected = select_recent(
            self.store.list(METADATA_PREFIX),
            now=now,
            max_age=self.max_age,
            limit=self.limit,
        )
        commits = [meta for meta in map(self._load, selected) if meta is not None]
        logger.debug(
            "Site index: %d of %d recent metadata file(s) loaded", len(commits), len(selected)
        )
        return SiteIndexView(
            commits=commits,
            main_branch=self.main_branch,
            main_branch_items=self.main_branch_items,
        )

    def rebuild(self, now: datetime | None = None) -> SiteIndexView:
        """Collect recent commits and overwrite the root ``index.html``."""
        view = self.collect(now)
        html = render_site_index(view, project_name=self.project_name, repo=self.repo)
        self.store.put(SITE_INDEX_KEY, html.encode("utf-8"), "text/html")
        logger.info("Rebuilt site index with %d commit(s)", len(view.commits))
        return view
