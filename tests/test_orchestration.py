"""End-to-end tests for the extraction orchestrator."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from thematic.config.settings import Settings
from thematic.entities.core import SourceType
from thematic.entities.reports import DiagnosisKind, ExtractionStatus, ProgressEvent
from thematic.errors import InvalidSourceTypeError
from thematic.orchestration import ExtractionOrchestrator, ExtractionRequest, run_extraction
from thematic.utils.cancellation import CancellationToken


def make_request(purpose: str, sources: List[Dict[str, Any]], **options: Any) -> ExtractionRequest:
    return ExtractionRequest.from_payload(
        {"purpose": purpose, "sources": sources, "options": options, "runId": "run-test"}
    )


def run(settings: Settings, embedder, request: ExtractionRequest, **kwargs: Any):
    with ExtractionOrchestrator.from_settings(settings, embed=embedder) as orchestrator:
        return orchestrator.run(request, **kwargs)


def test_coherent_sources_yield_shared_themes(settings, embedder, coherent_sources, coherent_themes) -> None:
    response = run(settings, embedder, make_request("qualitative_analysis", coherent_sources))

    assert response.status is ExtractionStatus.COMPLETE
    assert response.run_id == "run-test"
    assert {theme.label for theme in response.themes} == coherent_themes
    for theme in response.themes:
        assert len(theme.source_ids) == 11
        assert theme.confidence == pytest.approx(1.0)
        assert theme.provenance.influence_by_type == {"paper": 1.0}
        assert theme.provenance.type_counts == {"paper": 11}
        assert len(theme.provenance.citation_chain) == 10
        assert theme.provenance.citation_chain[0].startswith("DOI: 10.1000/nurse.")
    confidences = [theme.confidence for theme in response.themes]
    assert confidences == sorted(confidences, reverse=True)
    assert response.diagnosis is None

    report = response.methodology_report
    assert report.generator == "clustering"
    assert report.degradation_notices == []
    assert report.candidates_generated_count >= len(response.themes)
    assert report.stage_counts["sources"] == 11
    assert set(report.stage_durations) >= {"familiarization", "coding", "generation", "validation"}
    stats = response.familiarization_stats
    assert stats.processed_count == 11
    assert stats.abstract_count == 11
    assert stats.failed_count == 0


def test_max_themes_truncates_ranked_themes(settings, embedder, coherent_sources) -> None:
    response = run(settings, embedder, make_request("qualitative_analysis", coherent_sources, maxThemes=2))

    assert len(response.themes) == 2
    assert response.methodology_report.themes_truncated == 3


def test_truncated_content_reports_short_content(settings, embedder, truncated_sources) -> None:
    response = run(settings, embedder, make_request("qualitative_analysis", truncated_sources))

    assert response.status is ExtractionStatus.COMPLETE
    assert response.themes == []
    assert response.diagnosis.kind is DiagnosisKind.CONTENT_TOO_SHORT
    assert response.diagnosis.recommendations


def test_unrelated_sources_report_diverse_topics(settings, embedder, unrelated_sources) -> None:
    response = run(settings, embedder, make_request("qualitative_analysis", unrelated_sources))

    assert response.status is ExtractionStatus.COMPLETE
    assert response.themes == []
    assert response.diagnosis.kind is DiagnosisKind.TOPICS_TOO_DIVERSE
    report = response.methodology_report
    assert report.candidates_generated_count > 0
    assert report.rejection_summary["sources"] == report.candidates_generated_count
    assert response.rejected_everything


def test_disabled_generator_falls_back_with_notice(tmp_path, embedder, coherent_sources) -> None:
    settings = Settings(
        config_dir=tmp_path,
        create_dirs=False,
        policies={"meta_ethnography": {"enabled": False}},
    )

    response = run(settings, embedder, make_request("literature_synthesis", coherent_sources))

    assert response.status is ExtractionStatus.COMPLETE
    report = response.methodology_report
    assert report.generator == "clustering"
    assert len(report.degradation_notices) == 1
    notice = report.degradation_notices[0]
    assert (notice.requested, notice.used, notice.reason) == ("meta_ethnography", "clustering", "generator disabled")


def test_literature_synthesis_uses_meta_ethnography(settings, embedder, coherent_sources) -> None:
    response = run(settings, embedder, make_request("literature_synthesis", coherent_sources))

    assert response.status is ExtractionStatus.COMPLETE
    assert response.methodology_report.generator == "meta_ethnography"
    assert response.methodology_report.degradation_notices == []
    assert "overall_quality" in response.methodology_report.algorithm_metrics


def test_progress_events_are_ordered(settings, embedder, coherent_sources) -> None:
    events: List[ProgressEvent] = []

    run(settings, embedder, make_request("qualitative_analysis", coherent_sources), on_progress=events.append)

    stages = [event.stage_number for event in events]
    assert stages == sorted(stages)
    assert set(stages) == {1, 2, 3, 4, 5, 6}
    analysed = [event.live_stats.sources_analyzed for event in events]
    assert analysed == sorted(analysed)
    last_familiarization = [event for event in events if event.stage_number == 1][-1]
    assert last_familiarization.live_stats.sources_analyzed == 11
    assert last_familiarization.live_stats.total_words_read > 0
    assert events[-1].stage_number == 6
    assert events[-1].percentage == 100.0
    assert all(event.run_id == "run-test" for event in events)


def test_cancel_before_start(settings, embedder, coherent_sources) -> None:
    token = CancellationToken()
    token.cancel("user navigated away")
    events: List[ProgressEvent] = []

    response = run(
        settings,
        embedder,
        make_request("qualitative_analysis", coherent_sources),
        on_progress=events.append,
        cancellation=token,
    )

    assert response.status is ExtractionStatus.CANCELLED
    assert response.error.kind == "cancelled"
    assert response.themes == []
    assert len(events) == 1
    assert events[0].live_stats.current_operation == "cancelled"
    assert events[0].stage_number == 1
    assert embedder.calls == 0


def test_cancel_mid_run_stops_events(settings, embedder, coherent_sources) -> None:
    token = CancellationToken()
    events: List[ProgressEvent] = []

    def on_progress(event: ProgressEvent) -> None:
        events.append(event)
        if event.stage_number == 2:
            token.cancel("stop")

    response = run(
        settings,
        embedder,
        make_request("qualitative_analysis", coherent_sources),
        on_progress=on_progress,
        cancellation=token,
    )

    assert response.status is ExtractionStatus.CANCELLED
    assert events[-1].stage_number == 2
    assert events[-1].live_stats.current_operation == "cancelled"
    assert sum(1 for event in events if event.stage_number == 2) == 2
    assert response.familiarization_stats.processed_count == 11


def test_no_sources_fails(settings, embedder) -> None:
    events: List[ProgressEvent] = []

    response = run(settings, embedder, make_request("qualitative_analysis", []), on_progress=events.append)

    assert response.status is ExtractionStatus.FAILED
    assert response.error.kind == "no_valid_sources"
    assert [event.live_stats.current_operation for event in events] == ["failed"]
    assert events[0].message.startswith("Extraction failed")


def test_unknown_purpose_fails(settings, embedder, coherent_sources) -> None:
    response = run(settings, embedder, make_request("astrology", coherent_sources))

    assert response.status is ExtractionStatus.FAILED
    assert response.error.kind == "unknown_purpose"
    assert "qualitative_analysis" in response.error.message


def test_invalid_source_type_is_rejected(coherent_sources) -> None:
    sources = [dict(coherent_sources[0], type="blog")]

    with pytest.raises(InvalidSourceTypeError):
        make_request("qualitative_analysis", sources)


def test_direct_construction_rejects_invalid_source_type(coherent_sources) -> None:
    sources = [dict(coherent_sources[0], type="Video")]

    with pytest.raises(InvalidSourceTypeError, match="Video"):
        ExtractionRequest(purpose="qualitative_analysis", sources=sources)
    with pytest.raises(InvalidSourceTypeError):
        ExtractionRequest.model_validate({"purpose": "qualitative_analysis", "sources": sources})


def test_direct_construction_coerces_source_mappings(coherent_sources) -> None:
    request = ExtractionRequest(purpose="qualitative_analysis", sources=coherent_sources[:2])

    assert [source.id for source in request.sources] == [coherent_sources[0]["id"], coherent_sources[1]["id"]]
    assert all(source.type is SourceType.PAPER for source in request.sources)


def test_all_embeddings_failing_fails_run(settings, coherent_sources) -> None:
    def broken(text: str) -> List[float]:
        raise RuntimeError("embedding service unavailable")

    response = run(settings, broken, make_request("qualitative_analysis", coherent_sources))

    assert response.status is ExtractionStatus.FAILED
    assert response.error.kind == "no_valid_sources"
    assert response.familiarization_stats.failed_count == 11


def test_partial_embedding_failures_are_reported(settings, embedder, coherent_sources) -> None:
    def flaky(text: str) -> List[float]:
        if text.startswith("Interview study 3 "):
            raise RuntimeError("payload too large")
        return embedder(text)

    response = run(settings, flaky, make_request("qualitative_analysis", coherent_sources))

    assert response.status is ExtractionStatus.COMPLETE
    failed = response.methodology_report.failed_sources
    assert [failure.source_id for failure in failed] == ["paper-03"]
    assert failed[0].stage == "familiarization"
    assert all("paper-03" not in theme.source_ids for theme in response.themes)


def test_source_ids_without_fetcher_fail(settings, embedder) -> None:
    request = ExtractionRequest.from_payload({"purpose": "qualitative_analysis", "sourceIds": ["a", "b"]})

    response = run(settings, embedder, request)

    assert response.status is ExtractionStatus.FAILED
    assert response.error.kind == "configuration"


def test_run_extraction_fetches_sources(settings, embedder, coherent_sources, coherent_themes) -> None:
    requested: List[List[str]] = []

    def fetch(ids: List[str]) -> List[Dict[str, Any]]:
        requested.append(ids)
        return [source for source in coherent_sources if source["id"] in ids]

    ids = [source["id"] for source in coherent_sources]
    response = run_extraction(
        {"purpose": "qualitative_analysis", "sourceIds": ids},
        embed=embedder,
        fetch=fetch,
        settings=settings,
    )

    assert requested == [ids]
    assert response.status is ExtractionStatus.COMPLETE
    assert {theme.label for theme in response.themes} == coherent_themes


def test_response_payload_is_camel_case(settings, embedder, coherent_sources) -> None:
    response = run(settings, embedder, make_request("qualitative_analysis", coherent_sources))

    payload = response.to_payload()

    assert payload["status"] == "complete"
    assert payload["runId"] == "run-test"
    assert "methodologyReport" in payload
    assert payload["familiarizationStats"]["processedCount"] == 11
    assert "embedding" not in payload["themes"][0]["codes"][0]
