"""Site index view model — the ordered, bounded list of recent builds."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from storybook_publisher.models.commit import CommitMetadata


class SiteIndexView(BaseModel):
    """Recent commits, newest first, with the three views the index renders.

    The views are non-exclusive: one commit can show up in all of them.
    """

    model_config = ConfigDict(frozen=True)

    commits: list[CommitMetadata] = Field(default_factory=list)
    main_branch: str = "main"
    main_branch_items: int = 3

    @property
    def latest_main(self) -> list[CommitMetadata]:
        """Newest commits on the main branch, capped at ``main_branch_items``."""
        on_main = [c for c in self.commits if c.branch == self.main_branch]
        return on_main[: self.main_branch_items]

    @property
    def pull_requests(self) -> list[CommitMetadata]:
        return [c for c in self.commits if c.has_pull_request]

    @property
    def all_commits(self) -> list[CommitMetadata]:
        return list(self.commits)
