"""Tests for the run state machine and progress emitter."""

from __future__ import annotations

from typing import List

import pytest

from thematic.entities.reports import ProgressEvent
from thematic.orchestration import ExtractionState, ExtractionStateMachine, ProgressEmitter

FORWARD = [
    ExtractionState.FAMILIARIZING,
    ExtractionState.CANDIDATE_GENERATION,
    ExtractionState.VALIDATING,
    ExtractionState.DEDUPLICATING,
    ExtractionState.REPORTING,
    ExtractionState.COMPLETE,
]


def test_state_machine_walks_every_stage() -> None:
    machine = ExtractionStateMachine()

    for state in FORWARD:
        machine.transition(state)

    assert machine.terminal
    assert machine.history == [ExtractionState.IDLE, *FORWARD]


def test_state_machine_rejects_skipped_stage() -> None:
    machine = ExtractionStateMachine()
    machine.transition(ExtractionState.FAMILIARIZING)

    with pytest.raises(RuntimeError, match="familiarizing -> validating"):
        machine.transition(ExtractionState.VALIDATING)


def test_terminal_states_are_final() -> None:
    machine = ExtractionStateMachine()
    machine.transition(ExtractionState.FAMILIARIZING)
    machine.cancel()

    assert machine.state is ExtractionState.CANCELLED
    machine.fail()
    assert machine.state is ExtractionState.CANCELLED
    with pytest.raises(RuntimeError):
        machine.transition(ExtractionState.CANDIDATE_GENERATION)


def test_failure_reachable_from_idle() -> None:
    machine = ExtractionStateMachine()
    machine.fail()

    assert machine.state is ExtractionState.FAILED


def test_emitter_delivers_events_in_order() -> None:
    received: List[ProgressEvent] = []
    emitter = ProgressEmitter("run-1", received.append)

    emitter.emit(1, 50.0, "reading", sources_analyzed=1, total_words_read=100)
    emitter.emit(1, 100.0, sources_analyzed=2)
    emitter.emit(2, 10.0, codes_generated=4)

    assert [event.stage_number for event in received] == [1, 1, 2]
    assert [event.stage_name for event in received] == ["Familiarization", "Familiarization", "Initial Coding"]
    assert received[-1].live_stats.sources_analyzed == 2
    assert received[-1].live_stats.total_words_read == 100
    assert received[-1].live_stats.codes_generated == 4


def test_emitter_drops_earlier_stages_and_closed_runs() -> None:
    emitter = ProgressEmitter("run-1")
    emitter.emit(3, 10.0)

    assert emitter.emit(2, 90.0) is None
    emitter.close()
    assert emitter.emit(4, 10.0) is None
    assert emitter.dropped == 2
    assert len(emitter.events) == 1


def test_emitter_percentage_is_monotonic_and_clamped() -> None:
    emitter = ProgressEmitter("run-1")

    first = emitter.emit(1, 60.0)
    second = emitter.emit(1, 40.0)
    third = emitter.emit(1, 250.0)
    next_stage = emitter.emit(2, 5.0)

    assert (first.percentage, second.percentage, third.percentage) == (60.0, 60.0, 100.0)
    assert next_stage.percentage == 5.0


def test_sources_analyzed_never_decreases() -> None:
    emitter = ProgressEmitter("run-1")
    emitter.emit(1, 10.0, sources_analyzed=5)

    event = emitter.emit(1, 20.0, sources_analyzed=3)

    assert event.live_stats.sources_analyzed == 5


def test_failing_callback_is_ignored() -> None:
    def explode(event: ProgressEvent) -> None:
        raise ValueError("consumer gone")

    emitter = ProgressEmitter("run-1", explode)

    assert emitter.emit(1, 10.0) is not None
    assert emitter.emit(1, 20.0) is not None
    assert len(emitter.events) == 2


def test_finish_emits_terminal_event_then_closes() -> None:
    received: List[ProgressEvent] = []
    emitter = ProgressEmitter("run-1", received.append)
    emitter.emit(2, 40.0, codes_generated=3)

    terminal = emitter.finish("failed", "Extraction failed: embedding service down")

    assert terminal is received[-1]
    assert (terminal.stage_number, terminal.percentage) == (2, 40.0)
    assert terminal.live_stats.current_operation == "failed"
    assert terminal.live_stats.codes_generated == 3
    assert emitter.closed
    assert emitter.emit(3, 0.0) is None
    assert emitter.finish("cancelled") is None


def test_finish_before_any_stage_uses_first_stage() -> None:
    emitter = ProgressEmitter("run-1")

    terminal = emitter.finish("cancelled")

    assert terminal.stage_number == 1
    assert terminal.percentage == 0.0
    assert terminal.live_stats.current_operation == "cancelled"
