"""Progress events, statistics, and run-report models."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .core import ResearchPurpose, UnifiedTheme

TOTAL_STAGES = 6


class _CamelModel(BaseModel):
    """Models whose wire payload uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class LiveStats(_CamelModel):
    """Cumulative counters attached to every progress event."""

    sources_analyzed: int = Field(default=0, ge=0)
    full_text_read: int = Field(default=0, ge=0)
    abstracts_read: int = Field(default=0, ge=0)
    total_words_read: int = Field(default=0, ge=0)
    current_article: int = Field(default=0, ge=0)
    total_articles: int = Field(default=0, ge=0)
    article_title: Optional[str] = None
    article_type: Optional[str] = None
    article_words: Optional[int] = None
    current_operation: Optional[str] = None
    codes_generated: int = Field(default=0, ge=0)
    themes_identified: int = Field(default=0, ge=0)


class ProgressEvent(_CamelModel):
    """Out-of-band progress notification for one extraction run."""

    run_id: str
    stage_name: str
    stage_number: int = Field(..., ge=1, le=TOTAL_STAGES)
    total_stages: int = Field(default=TOTAL_STAGES)
    percentage: float = Field(..., ge=0.0, le=100.0)
    message: str = Field(default="")
    live_stats: LiveStats = Field(default_factory=LiveStats)


class SourceFailure(_CamelModel):
    """A source (or one of its codes) that could not be processed."""

    source_id: str
    stage: str
    reason: str


class FamiliarizationStats(_CamelModel):
    """Final familiarization counters mirrored into the response."""

    processed_count: int = Field(default=0, ge=0)
    full_text_count: int = Field(default=0, ge=0)
    abstract_count: int = Field(default=0, ge=0)
    total_words: int = Field(default=0, ge=0)
    failed_count: int = Field(default=0, ge=0)
    embedding_magnitude_mean: float = Field(default=0.0)
    embedding_magnitude_variance: float = Field(default=0.0, ge=0.0)
    embedding_dimensions: int = Field(default=0, ge=0)

    @property
    def embedded_count(self) -> int:
        return self.processed_count - self.failed_count


class DiagnosisKind(str, Enum):
    TOPICS_TOO_DIVERSE = "topics_too_diverse"
    CONTENT_TOO_SHORT = "content_too_short"
    THRESHOLDS_TOO_STRICT = "thresholds_too_strict"


class Diagnosis(_CamelModel):
    """Actionable explanation attached to an empty theme result."""

    kind: DiagnosisKind
    message: str
    recommendations: List[str] = Field(default_factory=list)


class GateCheck(_CamelModel):
    actual: float
    required: float
    passed: bool


class RejectedTheme(_CamelModel):
    """A rejected candidate together with the value of every gate."""

    theme_id: str
    label: str
    failed_gate: str
    checks: Dict[str, GateCheck] = Field(default_factory=dict)
    failure_reasons: List[str] = Field(default_factory=list)


class RejectionDiagnostics(_CamelModel):
    total_generated: int = 0
    total_rejected: int = 0
    total_validated: int = 0
    thresholds: Dict[str, float] = Field(default_factory=dict)
    rejected_themes: List[RejectedTheme] = Field(default_factory=list)
    more_rejected_count: int = 0
    recommendations: List[str] = Field(default_factory=list)


class DegradationNotice(_CamelModel):
    """Records a fallback from a specialised generator to the default one."""

    purpose: ResearchPurpose
    requested: str
    used: str
    reason: str


class MethodologyReport(_CamelModel):
    purpose: ResearchPurpose
    scientific_method: str
    validation_level: str
    generator: str = Field(default="clustering")
    target_theme_count: Tuple[int, int]
    stage_durations: Dict[str, float] = Field(default_factory=dict)
    stage_counts: Dict[str, int] = Field(default_factory=dict)
    candidates_generated_count: int = 0
    rejection_summary: Dict[str, int] = Field(default_factory=dict)
    rejection_diagnostics: Optional[RejectionDiagnostics] = None
    degradation_notices: List[DegradationNotice] = Field(default_factory=list)
    failed_sources: List[SourceFailure] = Field(default_factory=list)
    algorithm_metrics: Dict[str, Any] = Field(default_factory=dict)
    low_confidence_filtered: int = 0
    themes_truncated: int = 0


class ExtractionStatus(str, Enum):
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ExtractionErrorInfo(_CamelModel):
    kind: str
    message: str


class ExtractionResponse(_CamelModel):
    """Authoritative final result of one extraction run."""

    run_id: str
    status: ExtractionStatus
    themes: List[UnifiedTheme] = Field(default_factory=list)
    methodology_report: Optional[MethodologyReport] = None
    familiarization_stats: FamiliarizationStats = Field(default_factory=FamiliarizationStats)
    diagnosis: Optional[Diagnosis] = None
    error: Optional[ExtractionErrorInfo] = None

    @property
    def rejected_everything(self) -> bool:
        """True when candidates existed but none survived validation."""

        report = self.methodology_report
        return not self.themes and report is not None and report.candidates_generated_count > 0


__all__ = [
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
