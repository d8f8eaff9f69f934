"""Commit metadata — the canonical record of one publishing run.

One ``CommitMetadata`` is produced per pipeline run and written verbatim to
the object store under ``commits/metadata-<commit>.json``.  The site index
rebuild discovers every historical run by reading these records back, so the
serialized field names (``pullRequest``, ``pullRequestURL``) are part of the
storage format and must not change.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CommitMetadata(BaseModel):
    """Immutable description of the commit a batch of storybooks was built from.

    ``datestamp`` accepts ISO-8601 strings as well as epoch milliseconds, so
    records written by older publishers still parse.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    datestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    commit: str = Field(min_length=1)
    branch: str = ""
    pull_request: str | None = Field(default=None, alias="pullRequest")
    pull_request_url: str | None = Field(default=None, alias="pullRequestURL")
    summary: str = ""
    description: str = ""

    @model_validator(mode="after")
    def _pull_request_pair(self) -> CommitMetadata:
        if bool(self.pull_request) != bool(self.pull_request_url):
            raise ValueError(
                "pullRequest and pullRequestURL must be set together"
            )
        return self

    @classmethod
    def from_pull_request_url(cls, url: str | None, **fields) -> CommitMetadata:
        """Build metadata, deriving the PR number from the last URL segment."""
        if url:
            fields["pull_request_url"] = url
            fields["pull_request"] = url.rstrip("/").split("/")[-1]
        return cls(**fields)

    @property
    def has_pull_request(self) -> bool:
        return bool(self.pull_request)

    def to_json(self) -> str:
        """Serialize with the canonical camelCase storage field names."""
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str | bytes) -> CommitMetadata:
        """Parse a stored metadata record.

        Raises ``pydantic.ValidationError`` on malformed JSON or a record
        that violates the schema.
        """
        return cls.model_validate_json(data)
