"""Provenance bookkeeping for merged themes."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Mapping, Sequence

from ...entities.core import Source, ThemeProvenance


def normalize_influence(influence: Mapping[str, float]) -> Dict[str, float]:
    """Scale non-negative influence values so they sum to 1.0."""

    positive = {key: value for key, value in influence.items() if value > 0}
    total = sum(positive.values())
    if total <= 0:
        return {}
    return {key: value / total for key, value in sorted(positive.items())}


def combine_constituents(provenances: Sequence[ThemeProvenance]) -> Dict[str, float]:
    """Sum per-type constituent tallies across themes being merged.

    A theme without a tally counts as a single constituent spread over its
    ``influence_by_type``.
    """

    combined: Dict[str, float] = {}
    for provenance in provenances:
        for key, value in (provenance.constituents or provenance.influence_by_type).items():
            combined[key] = combined.get(key, 0.0) + value
    return dict(sorted(combined.items()))


def _citation_rank(source: Source) -> int:
    if source.doi:
        return 0
    if source.url:
        return 1
    return 2


def render_citation(source: Source) -> str:
    if source.doi:
        return f"DOI: {source.doi}"
    if source.url:
        return source.url
    return source.title or source.id


def citation_chain(
    source_ids: Sequence[str],
    sources: Mapping[str, Source],
    *,
    limit: int = 10,
) -> List[str]:
    """Citations for the theme's sources, DOI first, then URL, then title."""

    known = [sources[source_id] for source_id in source_ids if source_id in sources]
    ranked = sorted(enumerate(known), key=lambda item: (_citation_rank(item[1]), item[0]))
    chain: List[str] = []
    for _, source in ranked:
        rendered = render_citation(source)
        if rendered in chain:
            continue
        chain.append(rendered)
        if len(chain) >= limit:
            break
    return chain


def build_provenance(
    source_ids: Sequence[str],
    sources: Mapping[str, Source],
    influence: Mapping[str, float],
    *,
    limit: int = 10,
) -> ThemeProvenance:
    counts = Counter(sources[source_id].type.value for source_id in source_ids if source_id in sources)
    return ThemeProvenance(
        influence_by_type=normalize_influence(influence),
        constituents=dict(sorted(influence.items())),
        type_counts=dict(sorted(counts.items())),
        citation_chain=citation_chain(source_ids, sources, limit=limit),
    )


__all__ = [
    "build_provenance",
    "citation_chain",
    "combine_constituents",
    "normalize_influence",
    "render_citation",
]
