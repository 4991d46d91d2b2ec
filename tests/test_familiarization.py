"""Tests for the sequential familiarization stage."""

from __future__ import annotations

from typing import List

import pytest

from thematic.config.policies import FamiliarizationPolicy
from thematic.entities.core import Source, SourceType
from thematic.errors import ExtractionCancelled, ProviderError
from thematic.llm.client import EmbeddingClient
from thematic.pipeline.familiarization import (
    FamiliarizationProcessor,
    FamiliarizationTick,
    RunningStats,
    familiarize,
    is_full_text,
)
from thematic.utils.cancellation import CancellationToken


def make_source(source_id: str, words: int, *, content_type: str | None = None) -> Source:
    metadata = {"contentType": content_type} if content_type else {}
    return Source(
        id=source_id,
        type=SourceType.PAPER,
        title=f"Source {source_id}",
        content=" ".join(["word"] * words),
        metadata=metadata,
    )


def constant_embed(text: str) -> List[float]:
    return [3.0, 4.0]


@pytest.mark.parametrize(
    ("words", "content_type", "expected"),
    [
        (3400, "abstract", False),
        (3600, "abstract", True),
        (3500, None, False),
        (3501, None, True),
        (3001, "abstract_overflow", True),
        (3000, "abstract_overflow", False),
        (10, "full_text", True),
    ],
)
def test_is_full_text_thresholds(words: int, content_type: str | None, expected: bool) -> None:
    assert is_full_text(words, content_type) is expected


def test_full_text_threshold_follows_policy() -> None:
    policy = FamiliarizationPolicy(overflow_full_text_words=100, full_text_words=200)

    assert is_full_text(201, None, policy)
    assert not is_full_text(150, "abstract", policy)
    assert is_full_text(150, "abstract_overflow", policy)


def test_running_stats_matches_population_variance() -> None:
    stats = RunningStats()
    for value in (2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0):
        stats.push(value)

    assert stats.mean == pytest.approx(5.0)
    assert stats.variance == pytest.approx(4.0)
    assert stats.stddev == pytest.approx(2.0)


def test_familiarize_counts_words_and_content_types() -> None:
    sources = [make_source("a", 3400), make_source("b", 3600), make_source("c", 120, content_type="full_text")]

    result = familiarize(sources, constant_embed)

    stats = result.stats
    assert stats.processed_count == 3
    assert stats.full_text_count == 2
    assert stats.abstract_count == 1
    assert stats.total_words == 3400 + 3600 + 120
    assert stats.failed_count == 0
    assert stats.embedding_dimensions == 2
    assert stats.embedding_magnitude_mean == pytest.approx(5.0)
    assert stats.embedding_magnitude_variance == pytest.approx(0.0)
    assert [source_id for source_id, _ in result.embeddings] == ["a", "b", "c"]


def test_familiarize_ticks_are_monotonic_and_end_at_total() -> None:
    sources = [make_source(str(index), 10 + index) for index in range(5)]
    ticks: List[FamiliarizationTick] = []

    familiarize(sources, constant_embed, on_tick=ticks.append)

    assert [tick.index for tick in ticks] == [1, 2, 3, 4, 5]
    processed = [tick.stats.processed_count for tick in ticks]
    words = [tick.stats.total_words for tick in ticks]
    assert processed == sorted(processed)
    assert words == sorted(words)
    assert processed[-1] == len(sources)


def test_embedding_failure_is_recorded_and_counted() -> None:
    def flaky(text: str) -> List[float]:
        if text.startswith("boom"):
            raise RuntimeError("backend down")
        return [1.0, 0.0]

    sources = [
        make_source("ok", 20),
        Source(id="bad", type=SourceType.PODCAST, content="boom " * 30),
        Source(id="empty", type=SourceType.SOCIAL, content="   "),
    ]

    result = familiarize(sources, flaky)

    assert result.embedded_ids == {"ok"}
    assert result.stats.processed_count == 3
    assert result.stats.failed_count == 2
    assert result.stats.total_words == 20 + 30
    reasons = {failure.source_id: failure.reason for failure in result.failures}
    assert "backend down" in reasons["bad"]
    assert reasons["empty"] == "empty content"


def test_duplicate_ids_are_processed_independently() -> None:
    sources = [make_source("dup", 10), make_source("dup", 20)]

    result = familiarize(sources, constant_embed)

    assert result.stats.processed_count == 2
    assert result.stats.total_words == 30
    assert len(result.embeddings) == 2


def test_cancellation_stops_before_next_source() -> None:
    token = CancellationToken()
    calls: List[str] = []

    def embed(text: str) -> List[float]:
        calls.append(text)
        return [1.0]

    def on_tick(tick: FamiliarizationTick) -> None:
        if tick.index == 2:
            token.cancel("user requested")

    client = EmbeddingClient(embed)
    processor = FamiliarizationProcessor(client)
    with pytest.raises(ExtractionCancelled, match="user requested"):
        processor.run([make_source(str(i), 5) for i in range(4)], on_tick=on_tick, cancellation=token)

    assert len(calls) == 2


def test_dimension_change_counts_as_failure() -> None:
    vectors = iter([[1.0, 0.0], [1.0, 0.0, 0.0]])

    result = familiarize([make_source("a", 5), make_source("b", 5)], lambda text: next(vectors))

    assert result.embedded_ids == {"a"}
    assert result.failures[0].source_id == "b"
    assert "dimension" in result.failures[0].reason


def test_provider_error_surfaces_from_client() -> None:
    client = EmbeddingClient(lambda text: [float("nan")])

    with pytest.raises(ProviderError, match="non-finite"):
        client.embed("anything")
