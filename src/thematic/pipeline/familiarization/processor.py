"""Sequential familiarization: read, classify, and embed every source."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from time import perf_counter
from typing import Callable, List, Optional, Sequence, Tuple

from ...config.policies import FamiliarizationPolicy
from ...entities.core import Source
from ...entities.reports import FamiliarizationStats, SourceFailure
from ...errors import ProviderError
from ...llm.client import EmbedFn, EmbeddingClient
from ...utils.cancellation import CancellationToken
from ...utils.logging import get_logger
from ...utils.similarity import l2_norm

_LOGGER = get_logger(module=__name__)

FULL_TEXT = "full_text"
ABSTRACT_OVERFLOW = "abstract_overflow"


def is_full_text(
    word_count: int,
    content_type: Optional[str],
    policy: FamiliarizationPolicy | None = None,
) -> bool:
    """Classify content as full text from its word count and declared type."""

    cfg = policy or FamiliarizationPolicy()
    if content_type == FULL_TEXT:
        return True
    if content_type == ABSTRACT_OVERFLOW and word_count > cfg.overflow_full_text_words:
        return True
    return word_count > cfg.full_text_words


class RunningStats:
    """Welford's single-pass mean and population variance."""

    __slots__ = ("count", "mean", "_m2")

    def __init__(self) -> None:
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0

    def push(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)

    @property
    def variance(self) -> float:
        if self.count < 2:
            return 0.0
        return max(0.0, self._m2 / self.count)

    @property
    def stddev(self) -> float:
        return math.sqrt(self.variance)


@dataclass(slots=True)
class FamiliarizationAccumulator:
    """Per-run mutable counters; never shared across runs."""

    processed: int = 0
    full_text: int = 0
    abstracts: int = 0
    words: int = 0
    failed: int = 0
    dimensions: int = 0
    magnitude: RunningStats = field(default_factory=RunningStats)

    def snapshot(self) -> FamiliarizationStats:
        return FamiliarizationStats(
            processed_count=self.processed,
            full_text_count=self.full_text,
            abstract_count=self.abstracts,
            total_words=self.words,
            failed_count=self.failed,
            embedding_magnitude_mean=self.magnitude.mean,
            embedding_magnitude_variance=self.magnitude.variance,
            embedding_dimensions=self.dimensions,
        )


@dataclass(slots=True)
class FamiliarizationTick:
    """Emitted after each source with cumulative counters."""

    index: int
    total: int
    source: Source
    word_count: int
    full_text: bool
    succeeded: bool
    stats: FamiliarizationStats


@dataclass(slots=True)
class FamiliarizationResult:
    embeddings: List[Tuple[str, List[float]]]
    stats: FamiliarizationStats
    failures: List[SourceFailure] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def embedded_ids(self) -> set[str]:
        return {source_id for source_id, _ in self.embeddings}


class FamiliarizationProcessor:
    """Strictly sequential pass over the sources of one run."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        policy: FamiliarizationPolicy | None = None,
    ) -> None:
        self._embedder = embedder
        self._policy = policy or FamiliarizationPolicy()

    def run(
        self,
        sources: Sequence[Source],
        *,
        on_tick: Callable[[FamiliarizationTick], None] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> FamiliarizationResult:
        start = perf_counter()
        acc = FamiliarizationAccumulator()
        embeddings: List[Tuple[str, List[float]]] = []
        failures: List[SourceFailure] = []
        total = len(sources)

        for index, source in enumerate(sources, start=1):
            if cancellation is not None:
                cancellation.raise_if_cancelled()
            words = source.word_count
            full_text = is_full_text(words, source.content_type, self._policy)
            succeeded = False
            if not source.content.strip():
                failures.append(SourceFailure(source_id=source.id, stage="familiarization", reason="empty content"))
                _LOGGER.warning("Skipping source with empty content", source_id=source.id)
            else:
                try:
                    vector = self._embedder.embed(source.content, cancellation=cancellation)
                except ProviderError as exc:
                    failures.append(
                        SourceFailure(source_id=source.id, stage="familiarization", reason=str(exc))
                    )
                    _LOGGER.warning(
                        "Embedding failed for source",
                        source_id=source.id,
                        error=str(exc),
                        error_kind=exc.kind,
                    )
                else:
                    embeddings.append((source.id, vector))
                    acc.magnitude.push(l2_norm(vector))
                    acc.dimensions = acc.dimensions or len(vector)
                    succeeded = True

            acc.processed += 1
            acc.words += words
            if full_text:
                acc.full_text += 1
            else:
                acc.abstracts += 1
            if not succeeded:
                acc.failed += 1

            if on_tick is not None:
                on_tick(
                    FamiliarizationTick(
                        index=index,
                        total=total,
                        source=source,
                        word_count=words,
                        full_text=full_text,
                        succeeded=succeeded,
                        stats=acc.snapshot(),
                    )
                )

        elapsed = perf_counter() - start
        stats = acc.snapshot()
        _LOGGER.info(
            "Familiarization finished",
            processed=stats.processed_count,
            failed=stats.failed_count,
            full_text=stats.full_text_count,
            words=stats.total_words,
            elapsed_seconds=round(elapsed, 4),
        )
        return FamiliarizationResult(
            embeddings=embeddings,
            stats=stats,
            failures=failures,
            elapsed_seconds=elapsed,
        )


def familiarize(
    sources: Sequence[Source],
    embed: EmbedFn | EmbeddingClient,
    *,
    policy: FamiliarizationPolicy | None = None,
    on_tick: Callable[[FamiliarizationTick], None] | None = None,
    cancellation: CancellationToken | None = None,
) -> FamiliarizationResult:
    """Embed every source sequentially and return vectors plus running totals."""

    cfg = policy or FamiliarizationPolicy()
    if isinstance(embed, EmbeddingClient):
        return FamiliarizationProcessor(embed, cfg).run(
            sources, on_tick=on_tick, cancellation=cancellation
        )
    with EmbeddingClient(embed, timeout_seconds=cfg.embedding_timeout_seconds) as client:
        return FamiliarizationProcessor(client, cfg).run(
            sources, on_tick=on_tick, cancellation=cancellation
        )


__all__ = [
    "is_full_text",
    "RunningStats",
    "FamiliarizationAccumulator",
    "FamiliarizationTick",
    "FamiliarizationResult",
    "FamiliarizationProcessor",
    "familiarize",
]
