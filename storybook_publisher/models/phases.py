"""Pipeline phase models — the per-run state machine.

A run walks the phases in ``PHASE_ORDER``.  Each phase ends in exactly one
terminal state: PASSED, FAILED, SKIPPED (disabled by config, or never reached
because an earlier phase halted), or HALTED (an expected "nothing to do"
stop).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PhaseState(str, Enum):
    """Strict state model for each pipeline phase."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    HALTED = "halted"


# Valid state transitions, enforced by PhaseTracker.
# Terminal states have no outgoing transitions.
VALID_TRANSITIONS: dict[PhaseState, set[PhaseState]] = {
    PhaseState.NOT_STARTED: {PhaseState.RUNNING, PhaseState.SKIPPED},
    PhaseState.RUNNING: {PhaseState.PASSED, PhaseState.FAILED, PhaseState.HALTED},
    PhaseState.PASSED: set(),
    PhaseState.FAILED: set(),
    PhaseState.SKIPPED: set(),
    PhaseState.HALTED: set(),
}

TERMINAL_STATES: frozenset[PhaseState] = frozenset(
    state for state, targets in VALID_TRANSITIONS.items() if not targets
)


class PhaseDefinition(BaseModel):
    """A pipeline phase and its display name."""

    model_config = ConfigDict(frozen=True)

    phase_id: str
    display_name: str


PHASE_ORDER: list[PhaseDefinition] = [
    PhaseDefinition(phase_id="resolve_commit", display_name="Resolve Commit"),
    PhaseDefinition(phase_id="discover_packages", display_name="Discover Packages"),
    PhaseDefinition(phase_id="build", display_name="Build Storybooks"),
    PhaseDefinition(phase_id="discover_builds", display_name="Discover Builds"),
    PhaseDefinition(phase_id="publish_metadata", display_name="Publish Metadata"),
    PhaseDefinition(phase_id="upload_builds", display_name="Upload Builds"),
    PhaseDefinition(phase_id="notify_status", display_name="Notify Status"),
    PhaseDefinition(phase_id="rebuild_site_index", display_name="Rebuild Site Index"),
]


class PhaseRecord(BaseModel):
    """Final state of one phase in a run."""

    model_config = ConfigDict(frozen=True)

    phase_id: str
    display_name: str
    state: PhaseState
    detail: str = ""
    duration_seconds: float = 0.0


class PipelineReport(BaseModel):
    """Outcome of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    commit: str = ""
    phases: list[PhaseRecord] = Field(default_factory=list)
    halted: bool = False
    halt_reason: str = ""
    commit_index_url: str = ""
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def state_of(self, phase_id: str) -> PhaseState:
        for record in self.phases:
            if record.phase_id == phase_id:
                return record.state
        return PhaseState.NOT_STARTED
