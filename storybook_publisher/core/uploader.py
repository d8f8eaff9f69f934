"""Concurrent upload of one build output directory.

Every regular file under a build directory becomes one ``UploadTask`` whose
destination key is the destination prefix joined with the file's path
relative to the build directory.  Tasks run on a bounded thread pool; the
call returns only once every task has settled, and any failure is reported
for the batch as a whole after that join.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path

from storybook_publisher.core.object_store import ObjectStore
from storybook_publisher.models.builds import BuildOutput, UploadReport, UploadTask
from storybook_publisher.models.storage import StoredObject

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 16


class UploadBatchError(RuntimeError):
    """Raised after a batch settles when one or more uploads failed."""

    def __init__(self, failures: list[tuple[UploadTask, BaseException]]) -> None:
        self.failures = failures
        lines = [f"{task.destination}: {exc}" for task, exc in failures[:10]]
        if len(failures) > 10:
            lines.append(f"... and {len(failures) - 10} more")
        super().__init__(
            f"{len(failures)} upload(s) failed:\n" + "\n".join(lines)
        )


def destination_key(build_root: Path, source: Path, destination_prefix: str) -> str:
    """Map a file under *build_root* onto the remote *destination_prefix*."""
    relative = Path(source).relative_to(build_root).as_posix()
    prefix = destination_prefix.strip("/")
    return f"{prefix}/{relative}" if prefix else relative


class UploadEngine:
    """Uploads build directories to an object store with bounded concurrency.

    Parameters
    ----------
    store:
        Destination object store; must be thread-safe.
    concurrency:
        Maximum number of uploads in flight at any instant.
    excluded_dir:
        Directory name never uploaded (dependency cache).
    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        excluded_dir: str = "node_modules",
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self.store = store
        self.concurrency = concurrency
        self.excluded_dir = excluded_dir

    # ------------------------------------------------------------------
    # Task enumeration
    # ------------------------------------------------------------------

    def iter_tasks(self, build_dir: Path, destination_prefix: str) -> Iterator[UploadTask]:
        """Lazily yield one task per regular file under *build_dir*."""
        build_dir = Path(build_dir)
        for dirpath, dirnames, filenames in os.walk(build_dir):
            dirnames[:] = sorted(d for d in dirnames if d != self.excluded_dir)
            for filename in sorted(filenames):
                source = Path(dirpath) / filename
                if not source.is_file():
                    continue
                yield UploadTask(
                    source=source,
                    destination=destination_key(build_dir, source, destination_prefix),
                )

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def _upload(self, task: UploadTask) -> StoredObject:
        stored = self.store.upload_file(task.source, task.destination)
        logger.debug("\t%s", task.destination)
        return stored

    def upload_build(
        self, build: BuildOutput | Path, destination_prefix: str
    ) -> UploadReport:
        """Upload every file of *build* under *destination_prefix*.

        Blocks until all uploads have settled.  Raises ``UploadBatchError``
        if any of them failed; in-flight siblings are allowed to finish.
        """
        build_dir = build.path if isinstance(build, BuildOutput) else Path(build)
        futures: dict[Future[StoredObject], UploadTask] = {}

        with ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix="upload"
        ) as executor:
            for task in self.iter_tasks(build_dir, destination_prefix):
                futures[executor.submit(self._upload, task)] = task
            wait(futures)

        keys: list[str] = []
        total_bytes = 0
        failures: list[tuple[UploadTask, BaseException]] = []
        for future, task in futures.items():
            exc = future.exception()
            if exc is not None:
                logger.error("Upload of %s failed: %s", task.destination, exc)
                failures.append((task, exc))
                continue
            stored = future.result()
            keys.append(task.destination)
            total_bytes += stored.size

        if failures:
            raise UploadBatchError(failures)

        logger.info(
            "Uploaded %d file(s) from %s to %s", len(keys), build_dir, destination_prefix
        )
        return UploadReport(
            build_path=build_dir,
            destination_prefix=destination_prefix,
            keys=keys,
            total_bytes=total_bytes,
        )
