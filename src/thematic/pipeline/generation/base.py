"""Shared interface for candidate-theme generators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from typing import Any, Dict, List, Mapping, Sequence

from ...config.policies import PurposeConfig
from ...entities.core import CandidateTheme, Code, Source, ThemeOrigin
from ...utils.cancellation import CancellationToken
from ...utils.text import rank_terms, title_case

EmbeddingMap = Mapping[str, Sequence[float]]


class CandidateGenerator(ABC):
    """One theme-construction algorithm.

    ``generate`` is pure over its inputs apart from optional labeling calls.
    Algorithm-level quality metrics of the last run are exposed through
    :attr:`last_metrics`.
    """

    name: str = "generator"
    origin: ThemeOrigin = ThemeOrigin.CLUSTERING

    def __init__(self) -> None:
        self.last_metrics: Dict[str, Any] = {}

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def generate(
        self,
        sources: Sequence[Source],
        codes: Sequence[Code],
        embeddings: EmbeddingMap,
        config: PurposeConfig,
        *,
        cancellation: CancellationToken | None = None,
    ) -> List[CandidateTheme]:
        raise NotImplementedError


def cluster_keywords(codes: Sequence[Code], limit: int) -> List[str]:
    """Term-frequency ranking over code labels and excerpts."""

    texts: List[str] = []
    for code in codes:
        texts.append(code.label)
        texts.extend(code.excerpts)
    return rank_terms(texts, limit=limit)


def dominant_label(codes: Sequence[Code]) -> str:
    """Most frequent code label, ties broken by first appearance."""

    counts: Counter[str] = Counter()
    spelling: Dict[str, str] = {}
    order: Dict[str, int] = {}
    for code in codes:
        key = code.label.strip().lower()
        counts[key] += 1
        spelling.setdefault(key, code.label.strip())
        order.setdefault(key, len(order))
    if not counts:
        return "Untitled Theme"
    best = min(counts, key=lambda key: (-counts[key], order[key]))
    return title_case(spelling[best])


def describe(codes: Sequence[Code], keywords: Sequence[str]) -> str:
    sources = {code.source_id for code in codes}
    concepts = ", ".join(keywords[:5]) if keywords else "no dominant terms"
    return (
        f"Pattern spanning {len(codes)} code(s) across {len(sources)} source(s); "
        f"key concepts: {concepts}."
    )


__all__ = ["CandidateGenerator", "EmbeddingMap", "cluster_keywords", "dominant_label", "describe"]
