"""Domain entities for the thematic extraction pipeline."""

from .core import (
    CandidateTheme,
    Code,
    ResearchPurpose,
    Source,
    SourceType,
    ThemeOrigin,
    ThemeProvenance,
    UnifiedTheme,
    coerce_source_type,
)
from .reports import (
    TOTAL_STAGES,
    DegradationNotice,
    Diagnosis,
    DiagnosisKind,
    ExtractionErrorInfo,
    ExtractionResponse,
    ExtractionStatus,
    FamiliarizationStats,
    GateCheck,
    LiveStats,
    MethodologyReport,
    ProgressEvent,
    RejectedTheme,
    RejectionDiagnostics,
    SourceFailure,
)

__all__ = [
    "Source",
    "SourceType",
    "ResearchPurpose",
    "ThemeOrigin",
    "Code",
    "CandidateTheme",
    "UnifiedTheme",
    "ThemeProvenance",
    "coerce_source_type",
    "TOTAL_STAGES",
    "LiveStats",
    "ProgressEvent",
    "SourceFailure",
    "FamiliarizationStats",
    "DiagnosisKind",
    "Diagnosis",
    "GateCheck",
    "RejectedTheme",
    "RejectionDiagnostics",
    "DegradationNotice",
    "MethodologyReport",
    "ExtractionStatus",
    "ExtractionErrorInfo",
    "ExtractionResponse",
]
