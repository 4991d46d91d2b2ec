"""Stage policy models for familiarization, coding, clustering, validation and merge."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class FamiliarizationPolicy(BaseModel):
    """Full-text classification thresholds and embedding call limits."""

    overflow_full_text_words: int = Field(
        default=3000,
        ge=0,
        description="Word count above which an ``abstract_overflow`` source counts as full text.",
    )
    full_text_words: int = Field(
        default=3500,
        ge=0,
        description="Word count above which any source counts as full text.",
    )
    embedding_timeout_seconds: float = Field(default=30.0, gt=0.0)
    title_max_length: int = Field(default=60, ge=10)

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> "FamiliarizationPolicy":
        if self.overflow_full_text_words > self.full_text_words:
            raise ValueError("overflow_full_text_words must not exceed full_text_words")
        return self


class CodingPolicy(BaseModel):
    """Frequency-based code extraction limits."""

    min_sentence_length: int = Field(default=20, ge=0)
    min_token_length: int = Field(default=4, ge=1)
    top_keywords: int = Field(default=10, ge=1)
    top_bigrams: int = Field(default=5, ge=0)
    keyword_codes: int = Field(default=3, ge=0)
    max_excerpts_per_code: int = Field(default=3, ge=1)
    max_excerpt_length: int = Field(default=300, ge=20)


class ClusteringPolicy(BaseModel):
    """Similarity-threshold clustering of code embeddings."""

    similarity_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    max_keywords: int = Field(default=7, ge=1)
    label_keywords: int = Field(default=3, ge=1)
    use_generated_labels: bool = Field(default=True)


class ValidationPolicy(BaseModel):
    """Gate thresholds shared by every purpose plus diagnosis heuristics."""

    min_distinctiveness: float = Field(default=0.3, ge=0.0, le=1.0)
    min_evidence_quality: float = Field(default=0.5, ge=0.0, le=1.0)
    coherence_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    evidence_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    distinctiveness_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    short_content_words: int = Field(
        default=50,
        ge=0,
        description="Mean words per analysed source below which content is considered too short.",
    )
    diverse_rejection_ratio: float = Field(default=0.5, ge=0.0, le=1.0)
    max_rejection_samples: int = Field(default=10, ge=0)

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "ValidationPolicy":
        total = self.coherence_weight + self.evidence_weight + self.distinctiveness_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError("validation confidence weights must sum to 1.0")
        return self


class DeduplicationPolicy(BaseModel):
    """Keyword and label thresholds for theme merging."""

    keyword_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    label_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    citation_chain_length: int = Field(default=10, ge=0)


__all__ = [
    "FamiliarizationPolicy",
    "CodingPolicy",
    "ClusteringPolicy",
    "ValidationPolicy",
    "DeduplicationPolicy",
]
