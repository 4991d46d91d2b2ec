"""Meta-ethnographic synthesis (Noblit & Hare 1988) for literature synthesis.

Every source is treated as a study whose codes are its concepts. Concepts are
translated into each other across every ordered pair of studies; direct and
analogous translations build the line of argument, while related concepts whose
label or description carries contradiction markers feed the refutational
synthesis.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from statistics import mean
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from ...config.policies import MetaEthnographyPolicy, PurposeConfig
from ...entities.core import CandidateTheme, Code, Source, ThemeOrigin
from ...errors import GeneratorUnavailableError
from ...utils.cancellation import CancellationToken
from ...utils.helpers import stable_id
from ...utils.logging import get_logger
from ...utils.similarity import similarity_matrix
from .base import CandidateGenerator, EmbeddingMap, cluster_keywords

_LOGGER = get_logger(module=__name__)

CONTRADICTION_INDICATORS: Dict[str, Tuple[str, ...]] = {
    "direct": ("however", "contrary", "opposite", "disagree", "refute", "conflict"),
    "methodological": ("different method", "approach varied", "measurement", "design"),
    "contextual": ("context-specific", "cultural", "setting", "population"),
    "temporal": ("over time", "changed", "evolved", "historical"),
}

EXPLANATION_PLAUSIBILITY: Dict[str, Tuple[str, float]] = {
    "methodological": ("methodological", 0.7),
    "contextual": ("contextual", 0.8),
    "temporal": ("temporal", 0.6),
    "direct": ("definitional", 0.5),
}


@dataclass(slots=True)
class ConceptMapping:
    source: Code
    target: Code
    mapping_type: str
    similarity: float
    evidence: List[str] = field(default_factory=list)


@dataclass(slots=True)
class Translation:
    source_study: str
    target_study: str
    mappings: List[ConceptMapping]
    confidence: float
    reciprocal: bool = False

    @property
    def key(self) -> str:
        return f"{self.source_study}->{self.target_study}"


@dataclass(slots=True)
class ConsensusTheme:
    label: str
    codes: Dict[str, Code]
    study_ids: Set[str]
    translation_keys: Set[str]
    similarities: List[float]

    @property
    def strength(self) -> float:
        return mean(self.similarities) if self.similarities else 0.0


@dataclass(slots=True)
class Contradiction:
    mapping: ConceptMapping
    kind: str
    severity: float
    explanation: str
    plausibility: float

    @property
    def resolved(self) -> bool:
        return self.plausibility >= 0.5


def _concept_text(code: Code) -> str:
    return f"{code.label} {code.description}".lower()


def _has_indicator(text: str, kind: str) -> bool:
    return any(indicator in text for indicator in CONTRADICTION_INDICATORS[kind])


def contradiction_type(text_a: str, text_b: str) -> str:
    combined = f"{text_a} {text_b}".lower()
    for kind in ("methodological", "contextual", "temporal"):
        if _has_indicator(combined, kind):
            return kind
    return "direct"


def contradiction_severity(similarity: float, evidence_count: int) -> float:
    return (1.0 - similarity) * 0.7 + min(1.0, evidence_count / 4) * 0.3


class MetaEthnographyGenerator(CandidateGenerator):
    """Reciprocal translation, line-of-argument and refutational synthesis."""

    name = "meta_ethnography"
    origin = ThemeOrigin.META_ETHNOGRAPHY

    def __init__(self, policy: MetaEthnographyPolicy | None = None, *, max_keywords: int = 7) -> None:
        super().__init__()
        self._policy = policy or MetaEthnographyPolicy()
        self._max_keywords = max_keywords

    def is_available(self) -> bool:
        return self._policy.enabled

    # -- translation -------------------------------------------------------

    def _mapping_type(self, similarity: float, text_a: str, text_b: str) -> Optional[str]:
        policy = self._policy
        if similarity >= policy.refutation_similarity_floor and (
            _has_indicator(text_a, "direct") or _has_indicator(text_b, "direct")
        ):
            return "refutational"
        if similarity >= policy.direct_translation_threshold:
            return "direct"
        if similarity >= policy.analogous_translation_threshold:
            return "analogous"
        if similarity >= policy.partial_translation_threshold:
            return "partial"
        return None

    def _translate(
        self,
        source_study: str,
        target_study: str,
        studies: Dict[str, List[int]],
        codes: Sequence[Code],
        texts: Sequence[str],
        matrix: np.ndarray,
    ) -> Translation:
        mappings: List[ConceptMapping] = []
        for i in studies[source_study]:
            for j in studies[target_study]:
                similarity = float(matrix[i, j])
                mapping_type = self._mapping_type(similarity, texts[i], texts[j])
                if mapping_type is None:
                    continue
                evidence = []
                if codes[i].excerpts:
                    evidence.append(f"Source: {codes[i].excerpts[0]}")
                if codes[j].excerpts:
                    evidence.append(f"Target: {codes[j].excerpts[0]}")
                mappings.append(
                    ConceptMapping(
                        source=codes[i],
                        target=codes[j],
                        mapping_type=mapping_type,
                        similarity=similarity,
                        evidence=evidence,
                    )
                )
        mappings.sort(key=lambda mapping: -mapping.similarity)
        confidence = mean(m.similarity for m in mappings) if mappings else 0.0
        return Translation(
            source_study=source_study,
            target_study=target_study,
            mappings=mappings,
            confidence=confidence,
        )

    @staticmethod
    def _mark_reciprocity(translations: Dict[Tuple[str, str], Translation]) -> None:
        """A translation is reciprocal when half its concepts map back."""

        for (source, target), translation in translations.items():
            reverse = translations.get((target, source))
            if reverse is None or not translation.mappings:
                continue
            first_targets: Dict[str, str] = {}
            for mapping in translation.mappings:
                first_targets.setdefault(mapping.source.id, mapping.target.id)
            reverse_pairs = {(m.source.id, m.target.id) for m in reverse.mappings}
            hits = sum(1 for src, tgt in first_targets.items() if (tgt, src) in reverse_pairs)
            translation.reciprocal = hits / len(first_targets) >= 0.5

    # -- line of argument --------------------------------------------------

    def _consensus(self, translations: Sequence[Translation]) -> List[ConsensusTheme]:
        occurrences: Dict[str, ConsensusTheme] = {}
        for translation in translations:
            for mapping in translation.mappings:
                if mapping.mapping_type not in {"direct", "analogous"}:
                    continue
                key = mapping.target.label.lower()
                theme = occurrences.setdefault(
                    key,
                    ConsensusTheme(
                        label=mapping.target.label,
                        codes={},
                        study_ids=set(),
                        translation_keys=set(),
                        similarities=[],
                    ),
                )
                theme.codes.setdefault(mapping.source.id, mapping.source)
                theme.codes.setdefault(mapping.target.id, mapping.target)
                theme.study_ids.update({mapping.source.source_id, mapping.target.source_id})
                theme.translation_keys.add(translation.key)
                theme.similarities.append(mapping.similarity)
        consensus = [
            theme
            for theme in occurrences.values()
            if len(theme.study_ids) >= self._policy.min_studies_for_consensus
        ]
        consensus.sort(key=lambda theme: (-len(theme.study_ids), theme.label.lower()))
        return consensus

    @staticmethod
    def _evidence_chain(consensus: Sequence[ConsensusTheme]) -> List[Dict[str, object]]:
        links: List[Dict[str, object]] = []
        for i, theme_a in enumerate(consensus):
            for theme_b in consensus[i + 1 :]:
                shared = theme_a.translation_keys & theme_b.translation_keys
                if not shared:
                    continue
                links.append(
                    {
                        "from": theme_a.label,
                        "to": theme_b.label,
                        "link_type": "supports",
                        "strength": len(shared)
                        / max(len(theme_a.translation_keys), len(theme_b.translation_keys)),
                    }
                )
        return links

    @staticmethod
    def _contributing_studies(
        consensus: Sequence[ConsensusTheme], studies: Dict[str, List[int]], codes: Sequence[Code]
    ) -> Set[str]:
        contributing: Set[str] = set()
        for theme in consensus:
            needle = theme.label.lower()
            for study_id, indices in studies.items():
                for index in indices:
                    label = codes[index].label.lower()
                    if needle in label or label in needle:
                        contributing.add(study_id)
                        break
        return contributing

    # -- refutation ----------------------------------------------------------

    def _contradictions(self, translations: Sequence[Translation]) -> List[Contradiction]:
        found: List[Contradiction] = []
        for translation in translations:
            for mapping in translation.mappings:
                if mapping.mapping_type != "refutational":
                    continue
                severity = contradiction_severity(mapping.similarity, len(mapping.evidence))
                if severity < self._policy.contradiction_severity_threshold:
                    continue
                kind = contradiction_type(_concept_text(mapping.source), _concept_text(mapping.target))
                explanation, plausibility = EXPLANATION_PLAUSIBILITY[kind]
                found.append(
                    Contradiction(
                        mapping=mapping,
                        kind=kind,
                        severity=severity,
                        explanation=explanation,
                        plausibility=plausibility,
                    )
                )
        return found

    @staticmethod
    def _complexity(contradictions: Sequence[Contradiction]) -> float:
        if not contradictions:
            return 0.0
        avg_severity = mean(c.severity for c in contradictions)
        resolution = sum(1 for c in contradictions if c.resolved) / len(contradictions)
        tension = sum(1 for c in contradictions if not c.resolved) / len(contradictions)
        return min(1.0, avg_severity * 0.4 + (1 - resolution) * 0.3 + tension * 0.3)

    # -- generation ----------------------------------------------------------

    def generate(
        self,
        sources: Sequence[Source],
        codes: Sequence[Code],
        embeddings: EmbeddingMap,
        config: PurposeConfig,
        *,
        cancellation: CancellationToken | None = None,
    ) -> List[CandidateTheme]:
        usable = [code for code in codes if code.embedding]
        studies: Dict[str, List[int]] = {}
        for index, code in enumerate(usable):
            studies.setdefault(code.source_id, []).append(index)
        if len(studies) < self._policy.min_studies:
            raise GeneratorUnavailableError(
                f"meta-ethnography needs at least {self._policy.min_studies} studies with codes, "
                f"got {len(studies)}"
            )

        matrix = similarity_matrix([code.embedding for code in usable])
        texts = [_concept_text(code) for code in usable]
        study_ids = list(studies)
        translations: Dict[Tuple[str, str], Translation] = {}
        for a_index, study_a in enumerate(study_ids):
            if cancellation is not None:
                cancellation.raise_if_cancelled()
            for study_b in study_ids[a_index + 1 :]:
                translations[(study_a, study_b)] = self._translate(study_a, study_b, studies, usable, texts, matrix)
                translations[(study_b, study_a)] = self._translate(study_b, study_a, studies, usable, texts, matrix)
        self._mark_reciprocity(translations)
        ordered = list(translations.values())

        consensus = self._consensus(ordered)
        chain = self._evidence_chain(consensus)
        n_studies = len(study_ids)
        if consensus:
            avg_consensus = mean(theme.strength for theme in consensus)
            avg_coverage = mean(len(theme.study_ids) / n_studies for theme in consensus)
            argument_strength = min(1.0, avg_consensus * 0.6 + avg_coverage * 0.4)
        else:
            argument_strength = 0.0
        contradictions = self._contradictions(ordered)

        # Studies each concept was translated into, for per-source completeness.
        reached: Dict[str, Set[str]] = {}
        for translation in ordered:
            for mapping in translation.mappings:
                if mapping.mapping_type != "refutational":
                    reached.setdefault(mapping.source.id, set()).add(mapping.target.source_id)

        total_codes = len(usable)
        candidates: List[CandidateTheme] = []
        used_labels: Set[str] = set()
        for theme in consensus:
            members = list(theme.codes.values())
            completeness = self._per_source_completeness(members, reached, n_studies)
            keywords = cluster_keywords(members, self._max_keywords)
            candidates.append(
                CandidateTheme(
                    id=stable_id("meta-loa", theme.label.lower()),
                    label=theme.label,
                    description=(
                        f"Line-of-argument theme supported by {len(theme.study_ids)} studies "
                        f"(consensus strength {theme.strength:.2f})."
                    ),
                    codes=members,
                    keywords=keywords,
                    weight=len(members) / total_codes,
                    origin=self.origin,
                    metrics={
                        "consensus_strength": theme.strength,
                        "study_coverage": len(theme.study_ids) / n_studies,
                        "translation_completeness": mean(completeness.values()) if completeness else 0.0,
                    },
                    details={
                        "synthesis_method": "line_of_argument",
                        "translation_completeness_by_source": completeness,
                    },
                )
            )
            used_labels.add(theme.label.lower())

        for translation in ordered:
            if not translation.reciprocal or translation.confidence < self._policy.reciprocal_confidence_threshold:
                continue
            for mapping in translation.mappings[:2]:
                label_key = mapping.target.label.lower()
                if mapping.mapping_type != "direct" or label_key in used_labels:
                    continue
                members = [mapping.source, mapping.target]
                completeness = self._per_source_completeness(members, reached, n_studies)
                candidates.append(
                    CandidateTheme(
                        id=stable_id("meta-rec", mapping.source.id, mapping.target.id),
                        label=mapping.target.label,
                        description="Direct reciprocal translation between two studies.",
                        codes=members,
                        keywords=cluster_keywords(members, self._max_keywords),
                        weight=len(members) / total_codes,
                        origin=self.origin,
                        metrics={
                            "consensus_strength": mapping.similarity,
                            "translation_completeness": mean(completeness.values()),
                        },
                        details={
                            "synthesis_method": "reciprocal",
                            "translation_completeness_by_source": completeness,
                        },
                    )
                )
                used_labels.add(label_key)

        for contradiction in contradictions:
            mapping = contradiction.mapping
            members = [mapping.source, mapping.target]
            completeness = self._per_source_completeness(members, reached, n_studies)
            candidates.append(
                CandidateTheme(
                    id=stable_id("meta-ref", mapping.source.id, mapping.target.id),
                    label=f"Contested: {mapping.source.label[:30]}",
                    description=(
                        f"Conflicting findings between studies regarding {mapping.source.label[:50]} "
                        f"({contradiction.kind} contradiction; likely {contradiction.explanation} explanation)."
                    ),
                    codes=members,
                    keywords=cluster_keywords(members, self._max_keywords),
                    weight=len(members) / total_codes,
                    origin=self.origin,
                    metrics={
                        "contradiction_severity": contradiction.severity,
                        "synthesis_confidence": 1.0 - contradiction.severity,
                        "translation_completeness": mean(completeness.values()),
                    },
                    details={
                        "synthesis_method": "refutational",
                        "contradiction_type": contradiction.kind,
                        "translation_completeness_by_source": completeness,
                    },
                )
            )

        self.last_metrics = self._quality(
            studies=studies,
            codes=usable,
            translations=ordered,
            consensus=consensus,
            contradictions=contradictions,
        )
        self.last_metrics.update(
            {
                "argument_strength": argument_strength,
                "central_argument": self._central_argument(consensus),
                "evidence_links": len(chain),
                "refutation_complexity": self._complexity(contradictions),
                "reciprocal_translations": sum(1 for t in ordered if t.reciprocal),
            }
        )
        _LOGGER.info(
            "Meta-ethnographic synthesis finished",
            studies=n_studies,
            translations=len(ordered),
            consensus=len(consensus),
            contradictions=len(contradictions),
            candidates=len(candidates),
        )
        return candidates

    @staticmethod
    def _per_source_completeness(
        members: Sequence[Code], reached: Dict[str, Set[str]], n_studies: int
    ) -> Dict[str, float]:
        """Share of the other studies each contributing source was translated into."""

        per_source: Dict[str, Set[str]] = {}
        for code in members:
            targets = per_source.setdefault(code.source_id, set())
            targets.update(reached.get(code.id, set()) - {code.source_id})
        denominator = max(1, n_studies - 1)
        return {source_id: len(targets) / denominator for source_id, targets in sorted(per_source.items())}

    @staticmethod
    def _central_argument(consensus: Sequence[ConsensusTheme]) -> str:
        if not consensus:
            return "No central argument could be synthesized from the studies."
        top = consensus[:3]
        labels = ", ".join(theme.label for theme in top)
        return (
            f"The synthesized evidence suggests that {labels} are central concepts "
            f"supported across {len(top[0].study_ids)} or more studies."
        )

    def _quality(
        self,
        *,
        studies: Dict[str, List[int]],
        codes: Sequence[Code],
        translations: Sequence[Translation],
        consensus: Sequence[ConsensusTheme],
        contradictions: Sequence[Contradiction],
    ) -> Dict[str, float]:
        n_studies = len(studies)
        contributing = self._contributing_studies(consensus, studies, codes)
        study_coverage = len(contributing) / n_studies
        concepts_per_study = len(codes) / n_studies
        saturation = min(1.0, len(consensus) / max(1.0, concepts_per_study))
        expected = n_studies * (n_studies - 1)
        completed = sum(1 for translation in translations if translation.mappings)
        completeness = completed / max(1, expected)
        resolution = (
            sum(1 for c in contradictions if c.resolved) / len(contradictions) if contradictions else 1.0
        )
        overall = study_coverage * 0.3 + saturation * 0.25 + completeness * 0.25 + resolution * 0.2
        return {
            "study_coverage": study_coverage,
            "theme_saturation": saturation,
            "translation_completeness": completeness,
            "contradiction_resolution_rate": resolution,
            "overall_quality": min(1.0, max(0.0, overall)),
        }


__all__ = [
    "CONTRADICTION_INDICATORS",
    "MetaEthnographyGenerator",
    "contradiction_severity",
    "contradiction_type",
]
