"""Publishing pipeline — the central coordinator for one CI run.

The PublishPipeline wires discovery, the builder, the metadata publisher,
the upload engine, the status notifier and the site index aggregator into
one run:

    resolve_commit -> discover_packages -> [halt if empty] -> build
        -> discover_builds -> [halt if empty] -> publish_metadata
        -> upload_builds -> notify_status -> rebuild_site_index

A halt ("nothing to do") ends the run successfully; any other exception
marks the current phase FAILED, skips the rest, and propagates.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from storybook_publisher.config import PublisherConfig
from storybook_publisher.core.builder import StorybookBuilder
from storybook_publisher.core.commit_info import resolve_commit_metadata
from storybook_publisher.core.discovery import find_builds, find_packages
from storybook_publisher.core.object_store import ObjectStore, open_store
from storybook_publisher.core.phase_tracker import PhaseTracker
from storybook_publisher.core.publisher import (
    MetadataPublisher,
    build_prefix,
    commit_index_key,
)
from storybook_publisher.core.site_index import SiteIndexAggregator
from storybook_publisher.core.status import GitHubStatusNotifier
from storybook_publisher.core.uploader import UploadEngine
from storybook_publisher.models.builds import BuildOutput, PackageRef
from storybook_publisher.models.commit import CommitMetadata
from storybook_publisher.models.phases import PhaseState, PipelineReport

logger = logging.getLogger(__name__)


class PipelineHalt(Exception):
    """An expected early stop: there is nothing to publish."""


def _first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__


class PublishPipeline:
    """Runs one publishing pass for the current commit.

    Parameters
    ----------
    config:
        Resolved publisher configuration.
    store:
        Object store; opened from *config* on first use if not provided.
    builder:
        Storybook builder; built from *config* if not provided.
    notifier:
        Status notifier; built from *config* when a token is configured.
    commit_resolver:
        Returns this run's ``CommitMetadata``; reads git by default.
    """

    def __init__(
        self,
        config: PublisherConfig,
        *,
        store: ObjectStore | None = None,
        builder: StorybookBuilder | None = None,
        notifier: GitHubStatusNotifier | None = None,
        commit_resolver: Callable[[PublisherConfig], CommitMetadata] | None = None,
    ) -> None:
        self.config = config
        self._store = store
        self.builder = builder or StorybookBuilder(
            config.build_command,
            output_dir=config.build_marker,
            focus_command=(
                config.workspace_focus_command if config.use_yarn_workspaces else None
            ),
            stream=config.verbose,
        )
        self._notifier = notifier
        self._resolve_commit = commit_resolver or resolve_commit_metadata
        self.tracker = PhaseTracker()

        # Run state
        self.commit_metadata: CommitMetadata | None = None
        self.packages: list[PackageRef] = []
        self.builds: list[BuildOutput] = []
        self._halt_reason = ""

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            self._store = open_store(self.config)
        return self._store

    def _status_notifier(self) -> GitHubStatusNotifier | None:
        if self._notifier is not None:
            return self._notifier
        token = self.config.github_token
        if token is None or not token.get_secret_value():
            return None
        return GitHubStatusNotifier(
            self.config.github_repo,
            token.get_secret_value(),
            api_url=self.config.github_api_url,
            context=self.config.status_context,
        )

    def site_index(self) -> SiteIndexAggregator:
        return SiteIndexAggregator(
            self.store,
            max_age=self.config.site_max_age,
            limit=self.config.num_latest_items,
            main_branch=self.config.main_branch,
            main_branch_items=self.config.main_branch_items,
            project_name=self.config.project_name,
            repo=self.config.github_repo,
        )

    def commit_index_url(self) -> str:
        if self.commit_metadata is None:
            return ""
        return f"{self.config.public_url}/{commit_index_key(self.commit_metadata.commit)}"

    # ------------------------------------------------------------------
    # Phase lifecycle
    # ------------------------------------------------------------------

    @contextmanager
    def _phase(self, phase_id: str) -> Iterator[None]:
        self.tracker.transition(phase_id, PhaseState.RUNNING)
        try:
            yield
        except PipelineHalt as halt:
            self.tracker.transition(phase_id, PhaseState.HALTED, str(halt))
            raise
        except Exception as exc:
            self.tracker.transition(phase_id, PhaseState.FAILED, _first_line(exc))
            raise
        else:
            self.tracker.transition(phase_id, PhaseState.PASSED)

    def report(self) -> PipelineReport:
        """Snapshot of the run so far; valid after success, halt or failure."""
        return PipelineReport(
            commit=self.commit_metadata.commit if self.commit_metadata else "",
            phases=self.tracker.records(),
            halted=bool(self._halt_reason),
            halt_reason=self._halt_reason,
            commit_index_url=self.commit_index_url(),
        )

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> PipelineReport:
        """Execute every phase in order and return the run report.

        Raises whatever a failing phase raised, after recording it.
        """
        try:
            self._run_phases()
        except PipelineHalt as halt:
            self._halt_reason = str(halt)
            self.tracker.skip_remaining("nothing to do")
            logger.info("%s", halt)
        except Exception:
            self.tracker.skip_remaining("aborted")
            raise
        return self.report()

    def _run_phases(self) -> None:
        config = self.config

        with self._phase("resolve_commit"):
            self.commit_metadata = self._resolve_commit(config)
        commit = self.commit_metadata.commit

        with self._phase("discover_packages"):
            self.packages = list(
                find_packages(
                    config.packages_root,
                    marker=config.config_marker,
                    max_depth=config.packages_depth,
                    excluded_dir=config.excluded_dir,
                )
            )
            if not self.packages:
                raise PipelineHalt("No storybook packages to handle - exiting.")
            logger.info("Found %d storybook package(s)", len(self.packages))

        if config.skip_build:
            logger.info("Skipping storybooks build")
            self.tracker.skip("build", "disabled by configuration")
        else:
            with self._phase("build"):
                self.builder.build_all(self.packages)

        with self._phase("discover_builds"):
            self.builds = find_builds(
                config.packages_root,
                marker=config.build_marker,
                max_depth=config.packages_depth,
                excluded_dir=config.excluded_dir,
            )
            if not self.builds:
                raise PipelineHalt("No storybook build found - exiting.")

        if config.skip_publish:
            logger.info("Skipping storybooks publish")
            self.tracker.skip("publish_metadata", "disabled by configuration")
            self.tracker.skip("upload_builds", "disabled by configuration")
        else:
            with self._phase("publish_metadata"):
                MetadataPublisher(self.store).publish(self.commit_metadata, self.builds)

            with self._phase("upload_builds"):
                engine = UploadEngine(
                    self.store,
                    concurrency=config.upload_concurrency,
                    excluded_dir=config.excluded_dir,
                )
                for build in self.builds:
                    logger.info("Uploading build for %s", build.name)
                    engine.upload_build(build, build_prefix(commit, build))
            logger.info("Published storybooks to %s", self.commit_index_url())

        self._notify_phase(commit)

        if config.skip_publish:
            self.tracker.skip("rebuild_site_index", "disabled by configuration")
        else:
            with self._phase("rebuild_site_index"):
                self.site_index().rebuild()

    def _notify_phase(self, commit: str) -> None:
        if self.config.skip_status:
            logger.info("Skipping github status")
            self.tracker.skip("notify_status", "disabled by configuration")
            return

        notifier = self._status_notifier()
        if notifier is None:
            logger.warning("Skipping Github status check update - missing access token")
            self.tracker.skip("notify_status", "missing access token")
            return

        with self._phase("notify_status"):
            notifier.notify(commit, self.commit_index_url())
