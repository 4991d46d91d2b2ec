"""Orchestration public API."""

from __future__ import annotations

from .main import ExtractionOptions, ExtractionOrchestrator, ExtractionRequest, RunContext, run_extraction
from .progress import STAGE_NAMES, ProgressCallback, ProgressEmitter
from .state import TERMINAL_STATES, ExtractionState, ExtractionStateMachine

__all__ = [
    "run_extraction",
    "ExtractionOrchestrator",
    "ExtractionRequest",
    "ExtractionOptions",
    "RunContext",
    "ProgressEmitter",
    "ProgressCallback",
    "STAGE_NAMES",
    "ExtractionState",
    "ExtractionStateMachine",
    "TERMINAL_STATES",
]
