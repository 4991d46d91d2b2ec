"""Familiarization stage: embedding and full-text bookkeeping."""

from .processor import (
    FamiliarizationAccumulator,
    FamiliarizationProcessor,
    FamiliarizationResult,
    FamiliarizationTick,
    RunningStats,
    familiarize,
    is_full_text,
)

__all__ = [
    "FamiliarizationAccumulator",
    "FamiliarizationProcessor",
    "FamiliarizationResult",
    "FamiliarizationTick",
    "RunningStats",
    "familiarize",
    "is_full_text",
]
