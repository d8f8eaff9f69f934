"""Resolve the metadata of the commit being published.

Each field comes from an explicit source when one is configured (a
``version.json``, text files, CI variables) and from git otherwise.  Git
runs with the packages root as its working directory.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from storybook_publisher.config import PublisherConfig
from storybook_publisher.core.process import capture_output
from storybook_publisher.models.commit import CommitMetadata

logger = logging.getLogger(__name__)

GIT_COMMIT = "git rev-parse HEAD"
GIT_SUMMARY = "git log -n 1 --no-color --pretty=%s"
GIT_DESCRIPTION = "git log -n 1 --no-color --pretty=medium"
GIT_BRANCH = "git rev-parse --symbolic-full-name --abbrev-ref HEAD"

Capture = Callable[[str, Path], str]


def _read_commit_from_version_json(path: Path) -> str:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    commit = data.get("commit") if isinstance(data, dict) else None
    if not commit:
        raise ValueError(f"{path} has no 'commit' field")
    return str(commit)


def resolve_commit_metadata(
    config: PublisherConfig,
    *,
    capture: Capture = capture_output,
    now: datetime | None = None,
) -> CommitMetadata:
    """Build the ``CommitMetadata`` for this run from config, CI and git."""
    cwd = config.packages_root
    datestamp = now or datetime.now(timezone.utc)

    if config.version_json is not None:
        commit = _read_commit_from_version_json(config.version_json)
    else:
        commit = capture(GIT_COMMIT, cwd)

    if config.commit_summary_file is not None:
        summary = config.commit_summary_file.read_text(encoding="utf-8")
    else:
        summary = capture(GIT_SUMMARY, cwd)

    if config.commit_description_file is not None:
        description = config.commit_description_file.read_text(encoding="utf-8")
    else:
        description = capture(GIT_DESCRIPTION, cwd)

    branch = config.commit_branch or config.ci_branch or capture(GIT_BRANCH, cwd)

    metadata = CommitMetadata.from_pull_request_url(
        config.ci_pull_request or None,
        datestamp=datestamp,
        commit=commit.strip(),
        branch=branch.strip(),
        summary=summary.strip().splitlines()[0] if summary.strip() else "",
        description=description.strip(),
    )
    logger.info(
        "Publishing commit %s (branch %s%s)",
        metadata.commit,
        metadata.branch or "-",
        f", PR #{metadata.pull_request}" if metadata.has_pull_request else "",
    )
    return metadata
