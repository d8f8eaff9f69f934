"""Package and build discovery — bounded directory walks.

Both walks share the same rules: start at the packages root, descend at most
``max_depth`` levels (a marker that is a direct child of the root is at depth
1), never enter the dependency-cache directory, and never descend into a
marker directory once found.  Order is traversal order; callers may only
rely on each match appearing exactly once.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from storybook_publisher.models.builds import BuildOutput, PackageRef

logger = logging.getLogger(__name__)


def walk_markers(
    root: Path,
    marker: str,
    *,
    max_depth: int,
    excluded_dir: str = "node_modules",
) -> Iterator[Path]:
    """Yield every directory named *marker* under *root*, lazily."""
    root = Path(root)
    root_depth = len(root.parts)
    for dirpath, dirnames, _ in os.walk(root):
        current = Path(dirpath)
        depth = len(current.parts) - root_depth + 1
        dirnames.sort()
        if marker in dirnames:
            yield current / marker
        # Prune in place: os.walk honours the edited list.
        dirnames[:] = [
            d for d in dirnames
            if d != marker and d != excluded_dir and depth < max_depth
        ]


def find_packages(
    root: Path,
    *,
    marker: str = ".storybook",
    max_depth: int = 3,
    excluded_dir: str = "node_modules",
) -> Iterator[PackageRef]:
    """Lazily yield every package whose directory holds a config *marker*."""
    for marker_dir in walk_markers(
        root, marker, max_depth=max_depth, excluded_dir=excluded_dir
    ):
        logger.debug("Found storybook config %s", marker_dir)
        yield PackageRef(path=marker_dir.parent)


def find_builds(
    root: Path,
    *,
    marker: str = "storybook-static",
    max_depth: int = 3,
    excluded_dir: str = "node_modules",
) -> list[BuildOutput]:
    """Return every build output directory under *root*."""
    builds = [
        BuildOutput(path=marker_dir)
        for marker_dir in walk_markers(
            root, marker, max_depth=max_depth, excluded_dir=excluded_dir
        )
    ]
    logger.debug("Found %d storybook build(s) under %s", len(builds), root)
    return builds
