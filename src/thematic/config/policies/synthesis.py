"""Policies for the specialised synthesis pipelines."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class MetaEthnographyPolicy(BaseModel):
    """Translation thresholds for meta-ethnographic synthesis (Noblit & Hare)."""

    enabled: bool = Field(default=True)
    direct_translation_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    analogous_translation_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    partial_translation_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    # Contradiction markers only count between concepts at least this similar.
    refutation_similarity_floor: float = Field(default=0.1, ge=0.0, le=1.0)
    min_studies_for_consensus: int = Field(default=2, ge=2)
    contradiction_severity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    reciprocal_confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    min_studies: int = Field(default=2, ge=2)

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> "MetaEthnographyPolicy":
        if not (
            self.partial_translation_threshold
            <= self.analogous_translation_threshold
            <= self.direct_translation_threshold
        ):
            raise ValueError("translation thresholds must satisfy partial <= analogous <= direct")
        return self


class GroundedTheoryPolicy(BaseModel):
    """Open/axial/selective coding parameters (Strauss & Corbin)."""

    enabled: bool = Field(default=True)
    min_code_frequency: int = Field(default=2, ge=1)
    code_merge_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    min_axial_categories: int = Field(default=3, ge=1)
    max_axial_categories: int = Field(default=10, ge=1)
    codes_per_category: int = Field(default=5, ge=1)
    enable_in_vivo: bool = Field(default=True)
    saturation_code_coverage: float = Field(default=0.8, ge=0.0, le=1.0)
    saturation_paradigm_completeness: float = Field(default=0.6, ge=0.0, le=1.0)
    min_codes: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def _ordered_bounds(self) -> "GroundedTheoryPolicy":
        if self.min_axial_categories > self.max_axial_categories:
            raise ValueError("min_axial_categories must not exceed max_axial_categories")
        return self


__all__ = ["MetaEthnographyPolicy", "GroundedTheoryPolicy"]
