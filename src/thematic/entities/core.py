"""Core domain entities used throughout the extraction pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..errors import InvalidSourceTypeError


class SourceType(str, Enum):
    """Kinds of research material accepted by the pipeline."""

    PAPER = "paper"
    VIDEO = "video"
    PODCAST = "podcast"
    SOCIAL = "social"


class ResearchPurpose(str, Enum):
    """Research-methodology modes that parameterise an extraction run."""

    Q_METHODOLOGY = "q_methodology"
    SURVEY_CONSTRUCTION = "survey_construction"
    QUALITATIVE_ANALYSIS = "qualitative_analysis"
    LITERATURE_SYNTHESIS = "literature_synthesis"
    HYPOTHESIS_GENERATION = "hypothesis_generation"


class ThemeOrigin(str, Enum):
    """Algorithm that produced a candidate theme."""

    CLUSTERING = "clustering"
    META_ETHNOGRAPHY = "meta_ethnography"
    GROUNDED_THEORY = "grounded_theory"


def _clean_metadata_value(value: Any) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def coerce_source_type(value: Any) -> SourceType:
    """Return the :class:`SourceType` for ``value`` or raise ``InvalidSourceTypeError``.

    Matching is case-sensitive: ``"Paper"`` is rejected.
    """

    if isinstance(value, SourceType):
        return value
    try:
        return SourceType(value)
    except ValueError:
        valid = ", ".join(member.value for member in SourceType)
        raise InvalidSourceTypeError(
            f"Unsupported source type '{value}'. Expected one of: {valid}"
        ) from None


class Source(BaseModel):
    """Immutable input unit handed to the pipeline by the caller."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    type: SourceType
    title: str = Field(default="")
    content: str = Field(default="")
    keywords: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "Source":
        """Build a source from a raw mapping, validating the type token first."""

        data = dict(payload)
        data["type"] = coerce_source_type(data.get("type"))
        return cls.model_validate(data)

    @field_validator("content", "title", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def content_type(self) -> str | None:
        value = self.metadata.get("contentType") or self.metadata.get("content_type")
        return str(value) if value else None

    @property
    def doi(self) -> str | None:
        return _clean_metadata_value(self.metadata.get("doi"))

    @property
    def url(self) -> str | None:
        return _clean_metadata_value(self.metadata.get("url"))


class Code(BaseModel):
    """Atomic unit of meaning extracted from exactly one source."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    source_id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    description: str = Field(default="")
    excerpts: List[str] = Field(default_factory=list)
    embedding: List[float] = Field(default_factory=list, exclude=True)

    @property
    def has_evidence(self) -> bool:
        return any(excerpt.strip() for excerpt in self.excerpts)


class CandidateTheme(BaseModel):
    """A cluster of codes awaiting validation."""

    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    description: str = Field(default="")
    codes: List[Code] = Field(default_factory=list)
    source_ids: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    weight: float = Field(default=0.0, ge=0.0)
    origin: ThemeOrigin = Field(default=ThemeOrigin.CLUSTERING)
    metrics: Dict[str, float] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _normalise_sources(self) -> "CandidateTheme":
        """Keep ``source_ids`` a sorted set that always covers the codes' sources."""

        merged = set(self.source_ids)
        merged.update(code.source_id for code in self.codes)
        ordered = sorted(merged)
        if ordered != self.source_ids:
            object.__setattr__(self, "source_ids", ordered)
        return self


class ThemeProvenance(BaseModel):
    """Which source types and sources contributed to a theme."""

    influence_by_type: Dict[str, float] = Field(default_factory=dict)
    type_counts: Dict[str, int] = Field(default_factory=dict)
    citation_chain: List[str] = Field(default_factory=list)
    # Unnormalised constituent tally per source type, carried across merge rounds.
    constituents: Dict[str, float] = Field(default_factory=dict, exclude=True)


class UnifiedTheme(BaseModel):
    """Validated output unit of an extraction run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    description: str = Field(default="")
    keywords: List[str] = Field(default_factory=list)
    source_ids: List[str] = Field(..., min_length=1)
    weight: float = Field(default=0.0, ge=0.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provenance: ThemeProvenance = Field(default_factory=ThemeProvenance)
    codes: List[Code] = Field(default_factory=list)
    origin: ThemeOrigin = Field(default=ThemeOrigin.CLUSTERING)
    metrics: Dict[str, float] = Field(default_factory=dict)


__all__ = [
    "SourceType",
    "ResearchPurpose",
    "ThemeOrigin",
    "coerce_source_type",
    "Source",
    "Code",
    "CandidateTheme",
    "ThemeProvenance",
    "UnifiedTheme",
]
