"""Lifecycle state machine for one extraction run."""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List


class ExtractionState(str, Enum):
    IDLE = "idle"
    FAMILIARIZING = "familiarizing"
    CANDIDATE_GENERATION = "candidate_generation"
    VALIDATING = "validating"
    DEDUPLICATING = "deduplicating"
    REPORTING = "reporting"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES: FrozenSet[ExtractionState] = frozenset(
    {ExtractionState.COMPLETE, ExtractionState.FAILED, ExtractionState.CANCELLED}
)

_FORWARD: Dict[ExtractionState, ExtractionState] = {
    ExtractionState.IDLE: ExtractionState.FAMILIARIZING,
    ExtractionState.FAMILIARIZING: ExtractionState.CANDIDATE_GENERATION,
    ExtractionState.CANDIDATE_GENERATION: ExtractionState.VALIDATING,
    ExtractionState.VALIDATING: ExtractionState.DEDUPLICATING,
    ExtractionState.DEDUPLICATING: ExtractionState.REPORTING,
    ExtractionState.REPORTING: ExtractionState.COMPLETE,
}


class ExtractionStateMachine:
    """Enforces the fixed stage order; no stage may be skipped.

    ``FAILED`` and ``CANCELLED`` are reachable from every non-terminal state.
    """

    def __init__(self) -> None:
        self._state = ExtractionState.IDLE
        self.history: List[ExtractionState] = [ExtractionState.IDLE]

    @property
    def state(self) -> ExtractionState:
        return self._state

    @property
    def terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def can_transition(self, target: ExtractionState) -> bool:
        if self.terminal:
            return False
        if target in (ExtractionState.FAILED, ExtractionState.CANCELLED):
            return True
        return _FORWARD.get(self._state) == target

    def transition(self, target: ExtractionState) -> ExtractionState:
        if not self.can_transition(target):
            raise RuntimeError(f"Illegal extraction transition {self._state.value} -> {target.value}")
        self._state = target
        self.history.append(target)
        return target

    def fail(self) -> None:
        if not self.terminal:
            self.transition(ExtractionState.FAILED)

    def cancel(self) -> None:
        if not self.terminal:
            self.transition(ExtractionState.CANCELLED)


__all__ = ["ExtractionState", "ExtractionStateMachine", "TERMINAL_STATES"]
