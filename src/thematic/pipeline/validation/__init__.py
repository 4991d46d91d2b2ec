"""Theme review stage: quality gates and empty-result diagnosis."""

from .diagnosis import diagnose
from .processor import GATE_ORDER, ThemeValidator, ValidatedTheme, ValidationReport, coherence, evidence_quality

__all__ = [
    "GATE_ORDER",
    "ThemeValidator",
    "ValidatedTheme",
    "ValidationReport",
    "coherence",
    "diagnose",
    "evidence_quality",
]
