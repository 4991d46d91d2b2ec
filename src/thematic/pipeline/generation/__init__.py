"""Candidate-theme generation stage."""

from .base import CandidateGenerator, EmbeddingMap, cluster_keywords, describe, dominant_label
from .clustering import ClusteringGenerator
from .grounded_theory import GroundedTheoryGenerator
from .labeling import ThemeLabeler
from .meta_ethnography import MetaEthnographyGenerator
from .registry import GenerationOutcome, GeneratorRegistry, build_default_registry

__all__ = [
    "CandidateGenerator",
    "ClusteringGenerator",
    "EmbeddingMap",
    "GenerationOutcome",
    "GeneratorRegistry",
    "GroundedTheoryGenerator",
    "MetaEthnographyGenerator",
    "ThemeLabeler",
    "build_default_registry",
    "cluster_keywords",
    "describe",
    "dominant_label",
]
