"""Routing from purpose configuration to a candidate generator."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, List, Mapping, Sequence

from ...config.policies import Policies, PurposeConfig
from ...entities.core import CandidateTheme, Code, Source
from ...entities.reports import DegradationNotice
from ...errors import GeneratorUnavailableError
from ...llm.prompts import LabelPrompt
from ...utils.cancellation import CancellationToken
from ...utils.logging import get_logger
from .base import CandidateGenerator, EmbeddingMap
from .clustering import ClusteringGenerator
from .grounded_theory import GroundedTheoryGenerator
from .labeling import ThemeLabeler
from .meta_ethnography import MetaEthnographyGenerator

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class GenerationOutcome:
    candidates: List[CandidateTheme]
    generator_name: str
    notice: DegradationNotice | None = None
    metrics: Dict[str, Any] = field(default_factory=dict)
    elapsed_seconds: float = 0.0


class GeneratorRegistry:
    """Pick the purpose's specialised generator and degrade to the default one.

    Degradation happens when the requested generator is not registered, is
    disabled, or reports that the input cannot support it. Every degradation
    yields a :class:`DegradationNotice` for the methodology report.
    """

    def __init__(
        self,
        default: CandidateGenerator,
        specialized: Mapping[str, CandidateGenerator] | None = None,
    ) -> None:
        self._default = default
        self._specialized: Dict[str, CandidateGenerator] = dict(specialized or {})

    @property
    def default(self) -> CandidateGenerator:
        return self._default

    def register(self, generator: CandidateGenerator) -> None:
        self._specialized[generator.name] = generator

    def available(self) -> List[str]:
        names = [self._default.name]
        names.extend(name for name, gen in self._specialized.items() if gen.is_available())
        return names

    def generate(
        self,
        config: PurposeConfig,
        sources: Sequence[Source],
        codes: Sequence[Code],
        embeddings: EmbeddingMap,
        *,
        cancellation: CancellationToken | None = None,
    ) -> GenerationOutcome:
        start = perf_counter()
        requested = config.generator
        notice: DegradationNotice | None = None
        generator = self._default
        if requested != self._default.name:
            specialised = self._specialized.get(requested)
            if specialised is None:
                notice = self._degrade(config, requested, "generator not registered")
            elif not specialised.is_available():
                notice = self._degrade(config, requested, "generator disabled")
            else:
                try:
                    candidates = specialised.generate(
                        sources, codes, embeddings, config, cancellation=cancellation
                    )
                except GeneratorUnavailableError as exc:
                    notice = self._degrade(config, requested, str(exc))
                else:
                    return GenerationOutcome(
                        candidates=candidates,
                        generator_name=specialised.name,
                        metrics=dict(specialised.last_metrics),
                        elapsed_seconds=perf_counter() - start,
                    )

        candidates = generator.generate(sources, codes, embeddings, config, cancellation=cancellation)
        return GenerationOutcome(
            candidates=candidates,
            generator_name=generator.name,
            notice=notice,
            metrics=dict(generator.last_metrics),
            elapsed_seconds=perf_counter() - start,
        )

    def _degrade(self, config: PurposeConfig, requested: str, reason: str) -> DegradationNotice:
        _LOGGER.warning(
            "Specialised generator unavailable; falling back",
            purpose=config.purpose.value,
            requested=requested,
            used=self._default.name,
            reason=reason,
        )
        return DegradationNotice(
            purpose=config.purpose,
            requested=requested,
            used=self._default.name,
            reason=reason,
        )


def build_default_registry(policies: Policies, labeler: ThemeLabeler | None = None) -> GeneratorRegistry:
    """Clustering as the default plus the two specialised synthesis pipelines."""

    if labeler is None:
        labeler = ThemeLabeler(None, LabelPrompt(policies.llm.label_template), max_words=policies.llm.max_label_words)
    max_keywords = policies.clustering.max_keywords
    registry = GeneratorRegistry(ClusteringGenerator(policies.clustering, labeler=labeler))
    registry.register(MetaEthnographyGenerator(policies.meta_ethnography, max_keywords=max_keywords))
    registry.register(GroundedTheoryGenerator(policies.grounded_theory, max_keywords=max_keywords))
    return registry


__all__ = ["GenerationOutcome", "GeneratorRegistry", "build_default_registry"]
