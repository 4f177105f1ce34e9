"""Backtest run state machine with validated transitions."""

from enum import Enum


class RunState(str, Enum):
    """Lifecycle states of a single backtest run."""

    INIT = "INIT"  # Fresh portfolio, timeline built
    STEPPING = "STEPPING"  # Iterating over timestamps
    CLOSING = "CLOSING"  # Liquidating remaining positions
    DONE = "DONE"  # Metrics computed


# Valid state transitions
VALID_TRANSITIONS: dict[RunState, list[RunState]] = {
    RunState.INIT: [RunState.STEPPING],
    RunState.STEPPING: [RunState.CLOSING],
    RunState.CLOSING: [RunState.DONE],
    RunState.DONE: [],
}


class StateMachine:
    """Run lifecycle state machine with transition validation."""

    def __init__(self, run_id: str, initial_state: RunState = RunState.INIT):
        """
        Initialize state machine.

        Args:
            run_id: Label used in error messages (e.g., "window-3/in-sample")
            initial_state: Starting state (default: INIT)
        """
        self.run_id = run_id
        self._current_state = initial_state

    @property
    def current_state(self) -> RunState:
        """Get current state."""
        return self._current_state

    def transition_to(self, new_state: RunState) -> None:
        """
        Transition to a new state with validation.

        Raises:
            ValueError: If transition is invalid
        """
        if new_state not in VALID_TRANSITIONS[self._current_state]:
            raise ValueError(
                f"Invalid transition from {self._current_state.value} to {new_state.value} "
                f"for run {self.run_id}"
            )

        self._current_state = new_state

    def can_transition_to(self, new_state: RunState) -> bool:
        return new_state in VALID_TRANSITIONS[self._current_state]
