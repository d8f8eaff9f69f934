"""Per-run phase state tracking.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Phases start in pipeline order
- Every phase ends the run in a terminal state
"""

from __future__ import annotations

import time

from storybook_publisher.models.phases import (
    PHASE_ORDER,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    PhaseDefinition,
    PhaseRecord,
    PhaseState,
)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested phase transition is not valid."""


class PhaseTracker:
    """Tracks the state of every phase in one pipeline run.

    Parameters
    ----------
    phases:
        Phase definitions in execution order.
    """

    def __init__(self, phases: list[PhaseDefinition] | None = None) -> None:
        self._phases = list(phases or PHASE_ORDER)
        self._states: dict[str, PhaseState] = {
            p.phase_id: PhaseState.NOT_STARTED for p in self._phases
        }
        self._details: dict[str, str] = {}
        self._started: dict[str, float] = {}
        self._durations: dict[str, float] = {}

    @property
    def phase_ids(self) -> list[str]:
        return [p.phase_id for p in self._phases]

    def state(self, phase_id: str) -> PhaseState:
        return self._states[phase_id]

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def transition(self, phase_id: str, target: PhaseState, detail: str = "") -> None:
        """Move *phase_id* to *target*, validating against VALID_TRANSITIONS."""
        if phase_id not in self._states:
            raise InvalidTransitionError(f"Unknown phase {phase_id!r}")

        current = self._states[phase_id]
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {phase_id} from {current.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target == PhaseState.RUNNING:
            for earlier in self.phase_ids[: self.phase_ids.index(phase_id)]:
                if self._states[earlier] not in TERMINAL_STATES:
                    raise InvalidTransitionError(
                        f"Cannot start {phase_id}: {earlier} is {self._states[earlier].value}"
                    )
            self._started[phase_id] = time.monotonic()
        elif phase_id in self._started:
            self._durations[phase_id] = time.monotonic() - self._started[phase_id]

        self._states[phase_id] = target
        if detail:
            self._details[phase_id] = detail

    def skip(self, phase_id: str, detail: str = "") -> None:
        self.transition(phase_id, PhaseState.SKIPPED, detail)

    def skip_remaining(self, detail: str = "") -> None:
        """Mark every phase that never started as SKIPPED."""
        for phase_id, state in self._states.items():
            if state == PhaseState.NOT_STARTED:
                self.skip(phase_id, detail)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def records(self) -> list[PhaseRecord]:
        return [
            PhaseRecord(
                phase_id=p.phase_id,
                display_name=p.display_name,
                state=self._states[p.phase_id],
                detail=self._details.get(p.phase_id, ""),
                duration_seconds=round(self._durations.get(p.phase_id, 0.0), 3),
            )
            for p in self._phases
        ]
