"""Ingestion job state machine with valid transition enforcement."""

from __future__ import annotations

from enum import Enum


class JobState(Enum):
    """Possible states for a single ingestion run."""

    IDLE = "idle"
    CHECKING = "checking"
    SKIPPED = "skipped"
    FETCHING = "fetching"
    PARSING = "parsing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = {
    JobState.SKIPPED,
    JobState.DONE,
    JobState.FAILED,
}

VALID_TRANSITIONS: dict[JobState, set[JobState]] = {
    JobState.IDLE: {JobState.CHECKING},
    JobState.CHECKING: {JobState.SKIPPED, JobState.FETCHING, JobState.FAILED},
    JobState.FETCHING: {JobState.PARSING, JobState.FAILED},
    JobState.PARSING: {JobState.PERSISTING, JobState.FAILED},
    # SKIPPED covers losing the insert race to a concurrent writer
    JobState.PERSISTING: {JobState.DONE, JobState.SKIPPED, JobState.FAILED},
    JobState.SKIPPED: set(),
    JobState.DONE: set(),
    JobState.FAILED: set(),
}


class JobStateMachine:
    """Enforces valid state transitions and records the path taken."""

    def __init__(self) -> None:
        self.state = JobState.IDLE
        self.history: list[JobState] = [JobState.IDLE]

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, new_state: JobState) -> None:
        """Transition to *new_state*, raising ValueError on illegal moves."""
        if self.state in TERMINAL_STATES:
            raise ValueError(
                f"Cannot transition from terminal state {self.state.value}"
            )

        allowed = VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid transition: {self.state.value} -> {new_state.value}"
            )

        self.state = new_state
        self.history.append(new_state)
