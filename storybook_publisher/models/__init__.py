"""storybook-publisher data models — all Pydantic v2, all frozen (immutable)."""

from storybook_publisher.models.builds import (
    BuildOutput,
    BuildResult,
    PackageRef,
    PublishedCommit,
    UploadReport,
    UploadTask,
)
from storybook_publisher.models.commit import CommitMetadata
from storybook_publisher.models.phases import (
    PHASE_ORDER,
    VALID_TRANSITIONS,
    PhaseDefinition,
    PhaseRecord,
    PhaseState,
    PipelineReport,
)
from storybook_publisher.models.site import SiteIndexView
from storybook_publisher.models.storage import StoredObject

__all__ = [
    # commit
    "CommitMetadata",
    # builds
    "PackageRef",
    "BuildOutput",
    "BuildResult",
    "UploadTask",
    "UploadReport",
    "PublishedCommit",
    # storage
    "StoredObject",
    # site
    "SiteIndexView",
    # phases
    "PhaseState",
    "PhaseDefinition",
    "PhaseRecord",
    "PipelineReport",
    "PHASE_ORDER",
    "VALID_TRANSITIONS",
]
