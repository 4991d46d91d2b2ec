"""Grounded-theory generator (Strauss & Corbin) for hypothesis generation.

Open coding merges near-identical codes and keeps the recurring ones, axial
coding groups them into categories described by the paradigm model, and
selective coding picks the core category the others integrate around.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from ...config.policies import GroundedTheoryPolicy, PurposeConfig
from ...entities.core import CandidateTheme, Code, Source, ThemeOrigin
from ...errors import GeneratorUnavailableError
from ...utils.cancellation import CancellationToken
from ...utils.helpers import stable_id
from ...utils.logging import get_logger
from ...utils.similarity import similarity_matrix
from ...utils.text import title_case
from .base import CandidateGenerator, EmbeddingMap, cluster_keywords

_LOGGER = get_logger(module=__name__)

PARADIGM_INDICATORS: Dict[str, tuple[str, ...]] = {
    "causal_conditions": ("because", "due to", "caused by", "resulted from", "leads to"),
    "context": ("in the context of", "within", "setting", "environment", "situation"),
    "intervening_conditions": ("however", "although", "despite", "influenced by", "affected by"),
    "action_strategies": ("by", "through", "using", "approach", "strategy", "method"),
    "consequences": ("resulting in", "leading to", "outcome", "effect", "consequence", "impact"),
}

NARRATIVE_POSITIONS: Dict[str, str] = {
    "core": "The central phenomenon the other categories integrate around",
    "condition": "Precedes and enables the core phenomenon",
    "context": "Provides the setting for the core phenomenon",
    "strategy": "Represents actions taken in response to the core phenomenon",
    "consequence": "Results from the core phenomenon",
    "mediator": "Transmits the effect of the core phenomenon",
    "moderator": "Influences the strength of the core phenomenon",
}

_IN_VIVO_PATTERNS = (
    re.compile(r"[\"']([^\"']{3,50})[\"']"),
    re.compile(r"`([^`]{3,50})`"),
)
_INTENSITY_HIGH = re.compile(r"very|highly|extremely|strongly", re.IGNORECASE)
_INTENSITY_MODERATE = re.compile(r"slightly|somewhat|moderately", re.IGNORECASE)
_FREQUENCY_CONSTANT = re.compile(r"always|constantly|continuously", re.IGNORECASE)
_FREQUENCY_OCCASIONAL = re.compile(r"sometimes|occasionally", re.IGNORECASE)
_SENTENCE_BREAK = re.compile(r"[.!?]")


@dataclass(slots=True)
class OpenCode:
    label: str
    members: List[Code]
    in_vivo: bool = False
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def frequency(self) -> int:
        return len(self.members)

    @property
    def embedding(self) -> List[float]:
        return self.members[0].embedding


@dataclass(slots=True)
class AxialCategory:
    id: str
    label: str
    codes: List[OpenCode]
    paradigm: Dict[str, List[str]]

    @property
    def subcategories(self) -> List[str]:
        return [code.label for code in self.codes[3:]]

    @property
    def completeness(self) -> float:
        return sum(0.2 for values in self.paradigm.values() if values)


@dataclass(slots=True)
class CategoryRelationship:
    source_id: str
    target_id: str
    kind: str
    strength: float
    evidence: List[str]


def extract_in_vivo(text: str) -> List[str]:
    """Quoted participant language, three to fifty characters long."""

    found: List[str] = []
    for pattern in _IN_VIVO_PATTERNS:
        found.extend(match.group(1) for match in pattern.finditer(text))
    return found


def code_properties(context: str) -> Dict[str, str]:
    properties: Dict[str, str] = {}
    if _INTENSITY_HIGH.search(context):
        properties["intensity"] = "high"
    elif _INTENSITY_MODERATE.search(context):
        properties["intensity"] = "moderate"
    if _FREQUENCY_CONSTANT.search(context):
        properties["frequency"] = "constant"
    elif _FREQUENCY_OCCASIONAL.search(context):
        properties["frequency"] = "occasional"
    return properties


def _source_text(source: Source) -> str:
    parts = [source.title, source.content[:2000]]
    if source.keywords:
        parts.append(", ".join(source.keywords))
    return " ".join(part for part in parts if part)


def _label_pattern(label: str) -> re.Pattern[str]:
    words = [re.escape(word) for word in label.split()]
    return re.compile(r"\s+".join(words) or re.escape(label), re.IGNORECASE)


def paradigm_component(label: str, text: str, indicators: Sequence[str]) -> List[str]:
    """Clauses that follow an indicator and mention the label, plus nearby clauses."""

    label_re = _label_pattern(label)
    components: List[str] = []
    for indicator in indicators:
        pattern = re.compile(rf"({re.escape(indicator)})\s+([^.]{{10,100}})", re.IGNORECASE)
        for match in pattern.finditer(text):
            if label_re.search(match.group(2)):
                components.append(match.group(2).strip())
    for match in label_re.finditer(text):
        window = text[max(0, match.start() - 100) : min(len(text), match.start() + 100)]
        lowered = window.lower()
        for indicator in indicators:
            if indicator in lowered:
                fragments = _SENTENCE_BREAK.split(window)
                clause = fragments[1].strip() if len(fragments) > 1 else ""
                if len(clause) > 10:
                    components.append(clause)
    unique = list(dict.fromkeys(components))
    return unique[:5]


def word_overlap(first: Sequence[str], second: Sequence[str]) -> List[str]:
    """Pairs of phrases sharing at least two words longer than three characters."""

    overlap: List[str] = []
    for a in first:
        words_a = set(a.lower().split())
        for b in second:
            words_b = set(b.lower().split())
            common = [word for word in words_a & words_b if len(word) > 3]
            if len(common) >= 2:
                overlap.append(f'"{a}" relates to "{b}"')
    return overlap


def detect_relationship(a: AxialCategory, b: AxialCategory) -> Optional[CategoryRelationship]:
    checks = (
        ("causal", a.paradigm["consequences"], b.paradigm["causal_conditions"], 0.3),
        ("conditional", a.paradigm["context"], b.paradigm["intervening_conditions"], 0.25),
        ("hierarchical", a.subcategories, b.subcategories, 0.2),
    )
    for kind, first, second, step in checks:
        evidence = word_overlap(first, second)
        if evidence:
            return CategoryRelationship(
                source_id=a.id,
                target_id=b.id,
                kind=kind,
                strength=min(1.0, len(evidence) * step),
                evidence=evidence,
            )
    return None


class GroundedTheoryGenerator(CandidateGenerator):
    """Open, axial and selective coding over the extracted codes."""

    name = "grounded_theory"
    origin = ThemeOrigin.GROUNDED_THEORY

    def __init__(self, policy: GroundedTheoryPolicy | None = None, *, max_keywords: int = 7) -> None:
        super().__init__()
        self._policy = policy or GroundedTheoryPolicy()
        self._max_keywords = max_keywords

    def is_available(self) -> bool:
        return self._policy.enabled

    def _open_coding(self, codes: Sequence[Code], sources: Sequence[Source]) -> tuple[List[OpenCode], List[str]]:
        in_vivo: List[str] = []
        if self._policy.enable_in_vivo:
            for source in sources:
                in_vivo.extend(extract_in_vivo(_source_text(source)))
        in_vivo = list(dict.fromkeys(in_vivo))
        in_vivo_keys = {phrase.lower() for phrase in in_vivo}

        matrix = similarity_matrix([code.embedding for code in codes])
        merged: Set[int] = set()
        open_codes: List[OpenCode] = []
        for i, code in enumerate(codes):
            if i in merged:
                continue
            group = [i]
            for j in range(i + 1, len(codes)):
                if j not in merged and float(matrix[i, j]) >= self._policy.code_merge_threshold:
                    group.append(j)
                    merged.add(j)
            merged.add(i)
            members = [codes[index] for index in group]
            context = " ".join(excerpt for member in members for excerpt in member.excerpts)
            open_codes.append(
                OpenCode(
                    label=code.label,
                    members=members,
                    in_vivo=any(member.label.lower() in in_vivo_keys for member in members),
                    properties=code_properties(context),
                )
            )
        significant = [code for code in open_codes if code.frequency >= self._policy.min_code_frequency]
        return significant, in_vivo

    def _axial_groups(self, open_codes: Sequence[OpenCode]) -> List[tuple[OpenCode, List[OpenCode]]]:
        """Farthest-point seeding followed by nearest-centroid assignment."""

        policy = self._policy
        n = len(open_codes)
        k = min(max(policy.min_axial_categories, math.ceil(n / policy.codes_per_category)), policy.max_axial_categories, n)
        matrix = similarity_matrix([code.embedding for code in open_codes])
        centroids: List[int] = []
        for _ in range(k):
            best_index = -1
            best_distance = -1.0
            for j in range(n):
                if j in centroids:
                    continue
                if centroids:
                    distance = min(1.0 - float(matrix[j, c]) for c in centroids)
                else:
                    distance = 1.0
                if distance > best_distance:
                    best_distance = distance
                    best_index = j
            if best_index >= 0:
                centroids.append(best_index)

        groups: Dict[int, List[OpenCode]] = {c: [] for c in centroids}
        for i, code in enumerate(open_codes):
            nearest = max(centroids, key=lambda c: (float(matrix[i, c]), -centroids.index(c)))
            groups[nearest].append(code)
        return [(open_codes[c], groups[c]) for c in centroids if groups[c]]

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
        open_codes, in_vivo = self._open_coding(usable, sources)
        if len(open_codes) < self._policy.min_codes:
            raise GeneratorUnavailableError(
                f"grounded theory needs at least {self._policy.min_codes} recurring codes, "
                f"got {len(open_codes)}"
            )
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        corpus = " ".join(_source_text(source) for source in sources)
        categories: List[AxialCategory] = []
        for index, (centroid, group) in enumerate(self._axial_groups(open_codes), start=1):
            label = centroid.label
            paradigm = {
                component: paradigm_component(label, corpus, indicators)
                for component, indicators in PARADIGM_INDICATORS.items()
            }
            categories.append(AxialCategory(id=f"axial_{index}", label=label, codes=group, paradigm=paradigm))

        relationships: List[CategoryRelationship] = []
        for i, first in enumerate(categories):
            for second in categories[i + 1 :]:
                relationship = detect_relationship(first, second)
                if relationship is not None:
                    relationships.append(relationship)
        paradigm_completeness = sum(c.completeness for c in categories) / len(categories)

        centrality = self._centralities(categories, relationships)
        core = categories[0]
        for category in categories:
            if centrality[category.id] > centrality[core.id]:
                core = category
        roles = self._integration(core, categories, relationships)
        explanatory_power = self._explanatory_power(core, categories, relationships)
        total_assigned = sum(len(c.codes) for c in categories)
        variation = len(core.codes) / total_assigned if total_assigned else 0.0
        saturated = (
            total_assigned >= len(open_codes) * self._policy.saturation_code_coverage
            and paradigm_completeness >= self._policy.saturation_paradigm_completeness
            and len(relationships) >= len(categories) - 1
        )

        member_total = sum(code.frequency for code in open_codes)
        in_vivo_keys = {phrase.lower() for phrase in in_vivo}
        candidates: List[CandidateTheme] = []
        for category in categories:
            members = [member for code in category.codes for member in code.members]
            keywords = cluster_keywords(members, self._max_keywords)
            role, strength = roles.get(category.id, ("core", 1.0))
            head = ", ".join(code.label for code in category.codes[:3])
            candidates.append(
                CandidateTheme(
                    id=stable_id("gt", category.label.lower(), *sorted(m.id for m in members)),
                    label=title_case(category.label),
                    description=f"Category encompassing: {head}. {NARRATIVE_POSITIONS[role]}.",
                    codes=members,
                    keywords=keywords,
                    weight=len(members) / member_total,
                    origin=self.origin,
                    metrics={
                        "theoretical_saturation": 1.0 if saturated else 0.0,
                        "paradigm_completeness": category.completeness,
                        "centrality": centrality[category.id],
                        "integration_strength": strength,
                    },
                    details={
                        "core_category": category is core,
                        "role": role,
                        "paradigm": category.paradigm,
                        "subcategories": category.subcategories,
                        "in_vivo_codes": [
                            code.label for code in category.codes if code.in_vivo or code.label.lower() in in_vivo_keys
                        ],
                        "code_properties": {code.label: code.properties for code in category.codes if code.properties},
                    },
                )
            )

        self.last_metrics = {
            "open_codes": len(open_codes),
            "in_vivo_codes": len(in_vivo),
            "coding_density": len(open_codes) / max(1, len(sources)),
            "categories": len(categories),
            "relationships": len(relationships),
            "paradigm_completeness": paradigm_completeness,
            "theoretical_saturation": saturated,
            "core_category": title_case(core.label),
            "core_centrality": centrality[core.id],
            "explanatory_power": explanatory_power,
            "variation_accounted_for": variation,
            "storyline": self._storyline(core, categories, roles),
        }
        _LOGGER.info(
            "Grounded theory coding finished",
            open_codes=len(open_codes),
            categories=len(categories),
            relationships=len(relationships),
            saturated=saturated,
        )
        return candidates

    @staticmethod
    def _centralities(
        categories: Sequence[AxialCategory], relationships: Sequence[CategoryRelationship]
    ) -> Dict[str, float]:
        scores: Dict[str, float] = {}
        for category in categories:
            connections = sum(
                1 for r in relationships if category.id in (r.source_id, r.target_id)
            )
            connection_centrality = connections / (len(categories) * 2)
            paradigm = category.paradigm
            anchored = (
                bool(paradigm["causal_conditions"])
                + bool(paradigm["consequences"])
                + bool(paradigm["action_strategies"])
            ) / 3
            scores[category.id] = connection_centrality * 0.6 + anchored * 0.4
        return scores

    @staticmethod
    def _explanatory_power(
        core: AxialCategory,
        categories: Sequence[AxialCategory],
        relationships: Sequence[CategoryRelationship],
    ) -> float:
        related = [r for r in relationships if core.id in (r.source_id, r.target_id)]
        if not related:
            return 0.0
        avg_strength = sum(r.strength for r in related) / len(related)
        connected = {r.source_id for r in related} | {r.target_id for r in related}
        connected.discard(core.id)
        coverage = len(connected) / max(1, len(categories) - 1)
        return avg_strength * 0.5 + coverage * 0.5

    @staticmethod
    def _integration(
        core: AxialCategory,
        categories: Sequence[AxialCategory],
        relationships: Sequence[CategoryRelationship],
    ) -> Dict[str, tuple[str, float]]:
        roles: Dict[str, tuple[str, float]] = {core.id: ("core", 1.0)}
        for category in categories:
            if category is core:
                continue
            to_core = next(
                (r for r in relationships if r.source_id == category.id and r.target_id == core.id), None
            )
            from_core = next(
                (r for r in relationships if r.source_id == core.id and r.target_id == category.id), None
            )
            if to_core is not None:
                role = {"causal": "condition", "sequential": "strategy"}.get(to_core.kind, "context")
                roles[category.id] = (role, to_core.strength)
            elif from_core is not None:
                role = {"causal": "consequence", "conditional": "moderator"}.get(from_core.kind, "mediator")
                roles[category.id] = (role, from_core.strength)
            else:
                roles[category.id] = ("context", 0.5)
        return roles

    @staticmethod
    def _storyline(
        core: AxialCategory,
        categories: Sequence[AxialCategory],
        roles: Dict[str, tuple[str, float]],
    ) -> str:
        def labels_for(role: str) -> str:
            return ", ".join(
                title_case(c.label) for c in categories if c is not core and roles[c.id][0] == role
            )

        parts = [f'The central phenomenon of "{title_case(core.label)}" emerges from this analysis.']
        templates = (
            ("condition", "It is preceded by conditions including {}."),
            ("context", "The context is characterized by {}."),
            ("strategy", "Actors respond through strategies involving {}."),
            ("consequence", "This leads to consequences including {}."),
        )
        for role, template in templates:
            labels = labels_for(role)
            if labels:
                parts.append(template.format(labels))
        return " ".join(parts)


__all__ = [
    "GroundedTheoryGenerator",
    "PARADIGM_INDICATORS",
    "code_properties",
    "detect_relationship",
    "extract_in_vivo",
    "paradigm_component",
    "word_overlap",
]
