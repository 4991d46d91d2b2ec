"""Purpose-specific configuration bundles."""

from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import BaseModel, Field

from ...entities.core import ResearchPurpose

ValidationLevel = Literal["standard", "rigorous", "publication_ready"]
ContentPriority = Literal["low", "medium", "high", "critical"]
GeneratorName = Literal["clustering", "meta_ethnography", "grounded_theory"]

CONTENT_PRIORITY_WORD_COUNTS: Dict[str, int] = {
    "low": 200,
    "medium": 500,
    "high": 1000,
    "critical": 3000,
}


class Range(BaseModel):
    """Inclusive integer bounds with an optional target."""

    minimum: int = Field(..., ge=0)
    maximum: int = Field(..., ge=0)


class PaperLimits(Range):
    target: int = Field(..., ge=0)


class QualityWeights(BaseModel):
    """Relative weighting of paper-quality signals; components sum to 1.0."""

    content: float = Field(..., ge=0.0, le=1.0)
    citation: float = Field(..., ge=0.0, le=1.0)
    journal: float = Field(..., ge=0.0, le=1.0)
    methodology: float = Field(..., ge=0.0, le=1.0)
    diversity: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def total(self) -> float:
        return self.content + self.citation + self.journal + self.methodology + self.diversity


class QualityThreshold(BaseModel):
    initial: float = Field(..., ge=0.0, le=100.0)
    minimum: float = Field(..., ge=0.0, le=100.0)
    relaxation_steps: List[float] = Field(default_factory=list)


class FullTextRequirement(BaseModel):
    min_required: int = Field(default=0, ge=0)
    strict_requirement: bool = Field(default=False)
    full_text_boost: float = Field(default=0.0, ge=0.0, le=50.0)


class PurposeConfig(BaseModel):
    """Validated bundle of thresholds and targets for one research purpose."""

    purpose: ResearchPurpose
    description: str = Field(default="")
    scientific_method: str = Field(default="")
    generator: GeneratorName = Field(default="clustering")
    target_theme_count: Range
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    validation_level: ValidationLevel = Field(default="rigorous")
    min_sources: int = Field(..., ge=1)
    min_coherence: float = Field(..., ge=0.0, le=1.0)
    paper_limits: PaperLimits
    quality_weights: QualityWeights
    quality_threshold: QualityThreshold
    content_priority: ContentPriority = Field(default="medium")
    full_text_requirement: FullTextRequirement = Field(default_factory=FullTextRequirement)
    diversity_required: bool = Field(default=False)
    extraction_focus: Literal["breadth", "depth", "saturation"] = Field(default="depth")
    theme_granularity: Literal["fine", "medium", "coarse"] = Field(default="medium")

    @property
    def min_word_count(self) -> int:
        return CONTENT_PRIORITY_WORD_COUNTS[self.content_priority]


def _steps(start: int) -> List[float]:
    return [float(start - 5 * index) for index in range(5)]


DEFAULT_PURPOSE_CONFIGS: Dict[ResearchPurpose, PurposeConfig] = {
    ResearchPurpose.Q_METHODOLOGY: PurposeConfig(
        purpose=ResearchPurpose.Q_METHODOLOGY,
        description="Breadth-first statement generation covering the full viewpoint space.",
        scientific_method="k-means++ breadth-maximizing (Stephenson 1953)",
        target_theme_count=Range(minimum=30, maximum=80),
        min_confidence=0.4,
        validation_level="standard",
        min_sources=1,
        min_coherence=0.5,
        paper_limits=PaperLimits(minimum=500, target=600, maximum=800),
        quality_weights=QualityWeights(
            content=0.5, citation=0.2, journal=0.0, methodology=0.0, diversity=0.3
        ),
        quality_threshold=QualityThreshold(initial=40, minimum=20, relaxation_steps=_steps(40)),
        content_priority="low",
        full_text_requirement=FullTextRequirement(
            min_required=0, strict_requirement=False, full_text_boost=5
        ),
        diversity_required=True,
        extraction_focus="breadth",
        theme_granularity="fine",
    ),
    ResearchPurpose.SURVEY_CONSTRUCTION: PurposeConfig(
        purpose=ResearchPurpose.SURVEY_CONSTRUCTION,
        description="Distil robust constructs suitable for psychometric scale items.",
        scientific_method="Hierarchical clustering + Cronbach's alpha (Churchill 1979)",
        target_theme_count=Range(minimum=5, maximum=15),
        min_confidence=0.6,
        validation_level="rigorous",
        min_sources=3,
        min_coherence=0.7,
        paper_limits=PaperLimits(minimum=100, target=150, maximum=200),
        quality_weights=QualityWeights(
            content=0.35, citation=0.2, journal=0.25, methodology=0.2
        ),
        quality_threshold=QualityThreshold(initial=60, minimum=40, relaxation_steps=_steps(60)),
        content_priority="high",
        full_text_requirement=FullTextRequirement(
            min_required=5, strict_requirement=False, full_text_boost=15
        ),
        extraction_focus="depth",
        theme_granularity="coarse",
    ),
    ResearchPurpose.QUALITATIVE_ANALYSIS: PurposeConfig(
        purpose=ResearchPurpose.QUALITATIVE_ANALYSIS,
        description="Reflexive thematic analysis run to saturation.",
        scientific_method="Hierarchical clustering + Bayesian saturation (Braun & Clarke 2019)",
        target_theme_count=Range(minimum=5, maximum=20),
        min_confidence=0.5,
        validation_level="rigorous",
        min_sources=2,
        min_coherence=0.6,
        paper_limits=PaperLimits(minimum=50, target=100, maximum=200),
        quality_weights=QualityWeights(
            content=0.4, citation=0.2, journal=0.2, methodology=0.2
        ),
        quality_threshold=QualityThreshold(initial=60, minimum=40, relaxation_steps=_steps(60)),
        content_priority="high",
        full_text_requirement=FullTextRequirement(
            min_required=3, strict_requirement=False, full_text_boost=15
        ),
        extraction_focus="saturation",
        theme_granularity="medium",
    ),
    ResearchPurpose.LITERATURE_SYNTHESIS: PurposeConfig(
        purpose=ResearchPurpose.LITERATURE_SYNTHESIS,
        description="Meta-ethnographic synthesis across a comprehensive literature base.",
        scientific_method="Meta-ethnography (Noblit & Hare 1988)",
        generator="meta_ethnography",
        target_theme_count=Range(minimum=10, maximum=25),
        min_confidence=0.6,
        validation_level="publication_ready",
        min_sources=3,
        min_coherence=0.7,
        paper_limits=PaperLimits(minimum=400, target=450, maximum=500),
        quality_weights=QualityWeights(
            content=0.3, citation=0.25, journal=0.25, methodology=0.2
        ),
        quality_threshold=QualityThreshold(initial=70, minimum=50, relaxation_steps=_steps(70)),
        content_priority="critical",
        full_text_requirement=FullTextRequirement(
            min_required=10, strict_requirement=True, full_text_boost=20
        ),
        diversity_required=True,
        extraction_focus="breadth",
        theme_granularity="medium",
    ),
    ResearchPurpose.HYPOTHESIS_GENERATION: PurposeConfig(
        purpose=ResearchPurpose.HYPOTHESIS_GENERATION,
        description="Grounded-theory coding towards a core category and propositions.",
        scientific_method="Grounded theory + constant comparison (Glaser & Strauss 1967)",
        generator="grounded_theory",
        target_theme_count=Range(minimum=8, maximum=15),
        min_confidence=0.5,
        validation_level="rigorous",
        min_sources=2,
        min_coherence=0.6,
        paper_limits=PaperLimits(minimum=100, target=150, maximum=300),
        quality_weights=QualityWeights(
            content=0.4, citation=0.2, journal=0.2, methodology=0.2
        ),
        quality_threshold=QualityThreshold(initial=60, minimum=40, relaxation_steps=_steps(60)),
        content_priority="high",
        full_text_requirement=FullTextRequirement(
            min_required=8, strict_requirement=True, full_text_boost=15
        ),
        extraction_focus="depth",
        theme_granularity="medium",
    ),
}


__all__ = [
    "CONTENT_PRIORITY_WORD_COUNTS",
    "DEFAULT_PURPOSE_CONFIGS",
    "ContentPriority",
    "FullTextRequirement",
    "GeneratorName",
    "PaperLimits",
    "PurposeConfig",
    "QualityThreshold",
    "QualityWeights",
    "Range",
    "ValidationLevel",
]
