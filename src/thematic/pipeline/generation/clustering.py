"""Default generator: similarity-threshold clustering of code embeddings."""

from __future__ import annotations

from time import perf_counter
from typing import List, Sequence

from ...config.policies import ClusteringPolicy, PurposeConfig
from ...entities.core import CandidateTheme, Code, Source, ThemeOrigin
from ...utils.cancellation import CancellationToken
from ...utils.helpers import stable_id
from ...utils.logging import get_logger
from ...utils.similarity import similarity_matrix
from ..deduplication.graph import SimilarityGraph
from .base import CandidateGenerator, EmbeddingMap, cluster_keywords, describe, dominant_label
from .labeling import ThemeLabeler

_LOGGER = get_logger(module=__name__)


class ClusteringGenerator(CandidateGenerator):
    """Link codes whose embeddings are at least ``similarity_threshold`` apart.

    Each connected component becomes one candidate whose weight is its share
    of all clustered codes.
    """

    name = "clustering"
    origin = ThemeOrigin.CLUSTERING

    def __init__(self, policy: ClusteringPolicy | None = None, *, labeler: ThemeLabeler | None = None) -> None:
        super().__init__()
        self._policy = policy or ClusteringPolicy()
        self._labeler = labeler

    def generate(
        self,
        sources: Sequence[Source],
        codes: Sequence[Code],
        embeddings: EmbeddingMap,
        config: PurposeConfig,
        *,
        cancellation: CancellationToken | None = None,
    ) -> List[CandidateTheme]:
        start = perf_counter()
        usable = [code for code in codes if code.embedding]
        if not usable:
            self.last_metrics = {"clusters": 0, "codes": 0}
            return []

        graph = SimilarityGraph()
        for code in usable:
            graph.add_node(code.id)
        matrix = similarity_matrix([code.embedding for code in usable])
        threshold = self._policy.similarity_threshold
        for i in range(len(usable)):
            for j in range(i + 1, len(usable)):
                score = float(matrix[i, j])
                if score >= threshold:
                    graph.add_edge(usable[i].id, usable[j].id, score=score, driver="cosine")

        by_id = {code.id: code for code in usable}
        total = len(usable)
        candidates: List[CandidateTheme] = []
        for component in graph.connected_components():
            members = [by_id[code_id] for code_id in component]
            keywords = cluster_keywords(members, self._policy.max_keywords)
            label = dominant_label(members)
            generated = False
            if self._labeler is not None and self._policy.use_generated_labels:
                label, generated = self._labeler.label(
                    members, keywords, label, cancellation=cancellation
                )
            candidates.append(
                CandidateTheme(
                    id=stable_id("cand", *sorted(component)),
                    label=label,
                    description=describe(members, keywords),
                    codes=members,
                    keywords=keywords,
                    weight=len(members) / total,
                    origin=self.origin,
                    metrics={"cluster_size": float(len(members))},
                    details={"generated_label": generated},
                )
            )

        graph_stats = graph.stats()
        self.last_metrics = {
            "clusters": graph_stats["components"],
            "codes": graph_stats["nodes"],
            "edges": graph_stats["edges"],
            "largest_cluster": graph_stats["largest_component"],
            "similarity_threshold": threshold,
        }
        _LOGGER.info(
            "Clustering produced candidates",
            purpose=config.purpose.value,
            candidates=len(candidates),
            elapsed_seconds=round(perf_counter() - start, 4),
            **graph_stats,
        )
        return candidates


__all__ = ["ClusteringGenerator"]
