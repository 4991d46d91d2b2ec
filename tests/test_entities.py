"""Tests for domain entities and their wire payloads."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from thematic.entities import (
    CandidateTheme,
    Code,
    LiveStats,
    ProgressEvent,
    Source,
    SourceType,
    UnifiedTheme,
    coerce_source_type,
)
from thematic.errors import InvalidSourceTypeError


def test_source_from_mapping_parses_metadata() -> None:
    source = Source.from_mapping(
        {
            "id": "s1",
            "type": "video",
            "title": "Talk",
            "content": "one two three",
            "metadata": {"contentType": "full_text", "doi": " 10.1/abc ", "url": ""},
        }
    )

    assert source.type is SourceType.VIDEO
    assert source.word_count == 3
    assert source.content_type == "full_text"
    assert source.doi == "10.1/abc"
    assert source.url is None


def test_source_type_is_case_sensitive() -> None:
    with pytest.raises(InvalidSourceTypeError) as excinfo:
        coerce_source_type("Paper")

    assert excinfo.value.kind == "invalid_source_type"
    assert "paper, video, podcast, social" in excinfo.value.message


def test_source_none_content_becomes_empty() -> None:
    source = Source(id="s1", type=SourceType.SOCIAL, content=None)

    assert source.content == ""
    assert source.word_count == 0


def test_candidate_source_ids_cover_codes() -> None:
    codes = [
        Code(id="c1", source_id="b", label="Trust"),
        Code(id="c2", source_id="a", label="Trust"),
    ]
    candidate = CandidateTheme(id="t1", label="Trust", codes=codes, source_ids=["c"])

    assert candidate.source_ids == ["a", "b", "c"]


def test_unified_theme_requires_sources_and_is_frozen() -> None:
    with pytest.raises(ValidationError):
        UnifiedTheme(id="t1", label="Trust", source_ids=[])

    theme = UnifiedTheme(id="t1", label="Trust", source_ids=["a"], confidence=0.8)
    with pytest.raises(ValidationError):
        theme.label = "Other"  # type: ignore[misc]


def test_code_embedding_is_not_serialised() -> None:
    code = Code(id="c1", source_id="a", label="Trust", embedding=[0.1, 0.2])

    assert "embedding" not in code.model_dump()


def test_progress_event_payload_uses_camel_case() -> None:
    event = ProgressEvent(
        run_id="run-1",
        stage_name="Familiarization",
        stage_number=1,
        percentage=50.0,
        live_stats=LiveStats(sources_analyzed=2, total_words_read=120, article_title="A"),
    )

    payload = event.to_payload()

    assert payload["runId"] == "run-1"
    assert payload["stageNumber"] == 1
    assert payload["totalStages"] == 6
    assert payload["liveStats"]["sourcesAnalyzed"] == 2
    assert payload["liveStats"]["totalWordsRead"] == 120
    assert payload["liveStats"]["articleTitle"] == "A"


def test_progress_event_rejects_out_of_range_stage() -> None:
    with pytest.raises(ValidationError):
        ProgressEvent(run_id="r", stage_name="x", stage_number=7, percentage=0.0)
