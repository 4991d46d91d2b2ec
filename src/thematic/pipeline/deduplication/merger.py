"""Keyword and label based merging of overlapping themes."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence, Set, Tuple

from ...config.policies import DeduplicationPolicy
from ...entities.core import Code, Source, SourceType, ThemeProvenance, UnifiedTheme
from ...utils.logging import get_logger
from ...utils.similarity import jaccard, keyword_set
from ...utils.text import dedupe_preserving_order, word_set
from .graph import UnionFind
from .provenance import build_provenance, combine_constituents, normalize_influence

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class SourceTypeGroup:
    """Themes extracted from the sources of a single source type."""

    type: SourceType
    themes: List[UnifiedTheme]
    source_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _Signature:
    label: str
    keywords: FrozenSet[str]
    label_words: FrozenSet[str]


def _signature(theme: UnifiedTheme) -> _Signature:
    return _Signature(
        label=theme.label.strip().lower(),
        keywords=keyword_set(theme.keywords),
        label_words=word_set(theme.label),
    )


def _winner_key(theme: UnifiedTheme) -> Tuple[float, str, str]:
    return (-theme.weight, theme.label.lower(), theme.id)


class ThemeDeduplicator:
    """Merge themes whose keywords or labels overlap.

    Keyword sets are computed once per theme and candidate pairs come from an
    inverted index, so themes sharing no keyword and no label word are never
    compared. Merging repeats until no pair qualifies, which makes the
    operation idempotent.
    """

    def __init__(self, policy: DeduplicationPolicy | None = None) -> None:
        self.policy = policy or DeduplicationPolicy()
        self.stats: Dict[str, int] = {"input": 0, "output": 0, "merges": 0, "rounds": 0, "comparisons": 0}

    def should_merge(self, a: _Signature, b: _Signature) -> bool:
        if a.label and a.label == b.label:
            return True
        if jaccard(a.keywords, b.keywords) >= self.policy.keyword_threshold:
            return True
        return jaccard(a.label_words, b.label_words) >= self.policy.label_threshold

    def _candidate_pairs(self, signatures: Sequence[_Signature]) -> Iterable[Tuple[int, int]]:
        index: Dict[str, List[int]] = defaultdict(list)
        for position, signature in enumerate(signatures):
            tokens: Set[str] = {f"k:{keyword}" for keyword in signature.keywords}
            tokens.update(f"w:{word}" for word in signature.label_words)
            tokens.add(f"l:{signature.label}")
            for token in tokens:
                index[token].append(position)
        seen: Set[Tuple[int, int]] = set()
        for positions in index.values():
            for i, first in enumerate(positions):
                for second in positions[i + 1 :]:
                    pair = (first, second) if first < second else (second, first)
                    if pair not in seen:
                        seen.add(pair)
                        yield pair

    def _merge_round(self, themes: List[UnifiedTheme]) -> Tuple[List[UnifiedTheme], int]:
        signatures = [_signature(theme) for theme in themes]
        keys = [str(position) for position in range(len(themes))]
        uf = UnionFind(keys)
        merges = 0
        for first, second in self._candidate_pairs(signatures):
            self.stats["comparisons"] += 1
            if self.should_merge(signatures[first], signatures[second]) and uf.union(keys[first], keys[second]):
                merges += 1
        merged = [
            merge_themes([themes[int(key)] for key in component]) for component in uf.components()
        ]
        return merged, merges

    def deduplicate(self, themes: Sequence[UnifiedTheme]) -> List[UnifiedTheme]:
        start = perf_counter()
        current = list(themes)
        self.stats["input"] = len(current)
        self.stats["merges"] = 0
        self.stats["rounds"] = 0
        while True:
            self.stats["rounds"] += 1
            current, merges = self._merge_round(current)
            self.stats["merges"] += merges
            if merges == 0:
                break
        current.sort(key=_winner_key)
        self.stats["output"] = len(current)
        _LOGGER.debug(
            "Deduplicated themes",
            elapsed_seconds=round(perf_counter() - start, 4),
            **self.stats,
        )
        return current


def merge_themes(themes: Sequence[UnifiedTheme]) -> UnifiedTheme:
    """Collapse a group of themes into the highest-weight one."""

    if len(themes) == 1:
        return themes[0]
    ordered = sorted(themes, key=_winner_key)
    winner = ordered[0]
    keywords = dedupe_preserving_order([keyword for theme in ordered for keyword in theme.keywords])
    source_ids = sorted({source_id for theme in ordered for source_id in theme.source_ids})
    codes: Dict[str, Code] = {}
    for theme in ordered:
        for code in theme.codes:
            codes.setdefault(code.id, code)
    weight = sum(theme.weight for theme in ordered)
    if weight > 0:
        confidence = sum(theme.confidence * theme.weight for theme in ordered) / weight
    else:
        confidence = sum(theme.confidence for theme in ordered) / len(ordered)
    citations = dedupe_preserving_order(
        [citation for theme in ordered for citation in theme.provenance.citation_chain]
    )
    type_counts: Dict[str, int] = {}
    for theme in ordered:
        for type_name, count in theme.provenance.type_counts.items():
            type_counts[type_name] = max(type_counts.get(type_name, 0), count)
    constituents = combine_constituents([theme.provenance for theme in ordered])
    provenance = ThemeProvenance(
        influence_by_type=normalize_influence(constituents),
        type_counts=type_counts,
        constituents=constituents,
        citation_chain=citations,
    )
    return winner.model_copy(
        update={
            "keywords": keywords,
            "source_ids": source_ids,
            "codes": list(codes.values()),
            "weight": weight,
            "confidence": min(1.0, max(0.0, confidence)),
            "provenance": provenance,
        }
    )


def merge_from_sources(
    groups: Sequence[SourceTypeGroup],
    *,
    sources: Mapping[str, Source],
    policy: DeduplicationPolicy | None = None,
) -> List[UnifiedTheme]:
    """Merge per-source-type theme sets and attribute each result to its types.

    Every constituent counts once towards its group's type, so a merged
    theme's ``influence_by_type`` is the share of constituents per type.
    Type counts and the citation chain are rebuilt from the merged sources.
    """

    deduplicator = ThemeDeduplicator(policy)
    tagged: List[UnifiedTheme] = []
    for group in groups:
        allowed = set(group.source_ids)
        for theme in group.themes:
            source_ids = [sid for sid in theme.source_ids if not allowed or sid in allowed]
            if not source_ids:
                continue
            tagged.append(
                theme.model_copy(
                    update={
                        "source_ids": source_ids,
                        "provenance": ThemeProvenance(
                            influence_by_type={group.type.value: 1.0},
                            constituents={group.type.value: 1.0},
                        ),
                    }
                )
            )
    merged = deduplicator.deduplicate(tagged)
    limit = deduplicator.policy.citation_chain_length
    result = [
        theme.model_copy(
            update={
                "provenance": build_provenance(
                    theme.source_ids,
                    sources,
                    theme.provenance.constituents or theme.provenance.influence_by_type,
                    limit=limit,
                )
            }
        )
        for theme in merged
    ]
    _LOGGER.info(
        "Merged themes across source types",
        groups=len(groups),
        constituents=len(tagged),
        themes=len(result),
    )
    return result


__all__ = ["SourceTypeGroup", "ThemeDeduplicator", "merge_from_sources", "merge_themes"]
