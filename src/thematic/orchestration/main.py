"""High-level orchestration entry points for theme extraction."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config.policies import Policies, PurposeConfig
from ..config.purposes import PurposeResolver
from ..config.settings import Settings, get_settings
from ..entities.core import ResearchPurpose, Source, SourceType, UnifiedTheme
from ..entities.reports import (
    DegradationNotice,
    ExtractionErrorInfo,
    ExtractionResponse,
    ExtractionStatus,
    FamiliarizationStats,
    MethodologyReport,
    RejectionDiagnostics,
    SourceFailure,
)
from ..errors import ConfigurationError, ExtractionCancelled, NoValidSourcesError, ThematicError
from ..llm.client import EmbedFn, EmbeddingClient, FetchFn, GenerateFn, SourceFetcher, TextGenerator
from ..llm.prompts import LabelPrompt
from ..pipeline.coding import CodingProcessor, CodingTick
from ..pipeline.deduplication import SourceTypeGroup, merge_from_sources
from ..pipeline.familiarization import FamiliarizationProcessor, FamiliarizationTick
from ..pipeline.generation import GeneratorRegistry, ThemeLabeler, build_default_registry
from ..pipeline.validation import ThemeValidator, ValidatedTheme, diagnose
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger, logging_context
from ..utils.text import sanitize_title
from .progress import ProgressCallback, ProgressEmitter
from .state import ExtractionState, ExtractionStateMachine

_LOGGER = get_logger(module=__name__)


class ExtractionOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    min_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="minConfidence")
    max_themes: Optional[int] = Field(default=None, ge=1, alias="maxThemes")


class ExtractionRequest(BaseModel):
    """Inbound request: inline sources or ids to fetch, plus the research purpose."""

    model_config = ConfigDict(populate_by_name=True)

    purpose: str
    sources: List[Source] = Field(default_factory=list)
    source_ids: List[str] = Field(default_factory=list, alias="sourceIds")
    options: ExtractionOptions = Field(default_factory=ExtractionOptions)
    run_id: Optional[str] = Field(default=None, alias="runId")

    @field_validator("sources", mode="before")
    @classmethod
    def _coerce_sources(cls, value: Any) -> Any:
        # Raw mappings go through Source.from_mapping so bad types raise InvalidSourceTypeError.
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [Source.from_mapping(item) if isinstance(item, Mapping) else item for item in value]
        return value

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExtractionRequest":
        """Validate a raw request; unknown source types raise ``InvalidSourceTypeError``."""

        data = dict(payload)
        purpose = data.get("purpose")
        if isinstance(purpose, ResearchPurpose):
            data["purpose"] = purpose.value
        return cls.model_validate(data)


@dataclass(slots=True)
class RunContext:
    """Per-run mutable state owned by one :meth:`ExtractionOrchestrator.run` call."""

    run_id: str
    emitter: ProgressEmitter
    machine: ExtractionStateMachine
    cancellation: CancellationToken
    stage_durations: Dict[str, float] = field(default_factory=dict)
    stage_counts: Dict[str, int] = field(default_factory=dict)
    failures: List[SourceFailure] = field(default_factory=list)
    familiarization: FamiliarizationStats = field(default_factory=FamiliarizationStats)

    def advance(self, state: ExtractionState) -> None:
        self.machine.transition(state)
        _LOGGER.debug("Extraction state changed", run_id=self.run_id, state=state.value)

    def checkpoint(self) -> None:
        self.cancellation.raise_if_cancelled()


def _new_run_id() -> str:
    return f"{datetime.now(timezone.utc):%Y%m%d-%H%M%S}-{uuid4().hex[:6]}"


class ExtractionOrchestrator:
    """Coordinates the six extraction stages for one run at a time.

    The orchestrator holds only collaborators and configuration; every call to
    :meth:`run` creates its own accumulator, state machine and emitter so
    concurrent runs never share mutable state.
    """

    def __init__(
        self,
        *,
        policies: Policies,
        resolver: PurposeResolver,
        embedder: EmbeddingClient,
        registry: GeneratorRegistry,
        fetcher: SourceFetcher | None = None,
        generator: TextGenerator | None = None,
    ) -> None:
        self._policies = policies
        self._resolver = resolver
        self._embedder = embedder
        self._registry = registry
        self._fetcher = fetcher
        self._generator = generator
        self._validator = ThemeValidator(policies.validation)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        embed: EmbedFn,
        generate: GenerateFn | None = None,
        fetch: FetchFn | None = None,
        registry: GeneratorRegistry | None = None,
    ) -> "ExtractionOrchestrator":
        policies = settings.policies
        resolver = PurposeResolver(policies.purposes)
        embedder = EmbeddingClient.from_policy(
            embed,
            policies.llm,
            timeout_seconds=policies.familiarization.embedding_timeout_seconds,
        )
        generator = TextGenerator.from_policy(generate, policies.llm) if generate is not None else None
        fetcher = SourceFetcher.from_policy(fetch, policies.llm) if fetch is not None else None
        if registry is None:
            labeler = ThemeLabeler(
                generator,
                LabelPrompt(policies.llm.label_template),
                max_words=policies.llm.max_label_words,
            )
            registry = build_default_registry(policies, labeler)
        return cls(
            policies=policies,
            resolver=resolver,
            embedder=embedder,
            registry=registry,
            fetcher=fetcher,
            generator=generator,
        )

    def close(self) -> None:
        for client in (self._embedder, self._generator, self._fetcher):
            if client is not None:
                client.close()

    def __enter__(self) -> "ExtractionOrchestrator":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- public API ------------------------------------------------------------

    def run(
        self,
        request: ExtractionRequest,
        *,
        on_progress: ProgressCallback | None = None,
        cancellation: CancellationToken | None = None,
    ) -> ExtractionResponse:
        run_id = request.run_id or _new_run_id()
        ctx = RunContext(
            run_id=run_id,
            emitter=ProgressEmitter(run_id, on_progress),
            machine=ExtractionStateMachine(),
            cancellation=cancellation or CancellationToken(),
        )
        with logging_context(run_id=run_id, step="extraction"):
            try:
                response = self._execute(request, ctx)
            except ExtractionCancelled as exc:
                ctx.machine.cancel()
                _LOGGER.info("Extraction cancelled", reason=exc.message)
                ctx.emitter.finish("cancelled", f"Extraction cancelled: {exc.message}")
                response = self._terminal_response(ctx, ExtractionStatus.CANCELLED, exc)
            except ThematicError as exc:
                ctx.machine.fail()
                _LOGGER.error("Extraction failed", error_kind=exc.kind, error=exc.message)
                ctx.emitter.finish("failed", f"Extraction failed: {exc.message}")
                response = self._terminal_response(ctx, ExtractionStatus.FAILED, exc)
            except Exception as exc:
                ctx.machine.fail()
                ctx.emitter.finish("failed", f"Extraction failed: {exc}")
                raise
            finally:
                ctx.emitter.close()
        return response

    # -- stages ----------------------------------------------------------------

    def _execute(self, request: ExtractionRequest, ctx: RunContext) -> ExtractionResponse:
        config = self._resolver.resolve(request.purpose)
        sources = self._load_sources(request, ctx)
        if not sources:
            raise NoValidSourcesError("No sources were provided for extraction")
        by_id = {source.id: source for source in sources}
        _LOGGER.info(
            "Starting extraction",
            purpose=config.purpose.value,
            sources=len(sources),
            generator=config.generator,
        )

        ctx.checkpoint()
        ctx.advance(ExtractionState.FAMILIARIZING)
        familiarization = self._familiarize(sources, ctx)
        analysed_ids = familiarization.embedded_ids
        if not analysed_ids:
            raise NoValidSourcesError(
                f"None of the {len(sources)} source(s) could be analysed; see failed sources for details"
            )
        analysed = [source for source in sources if source.id in analysed_ids]

        ctx.advance(ExtractionState.CANDIDATE_GENERATION)
        coding = self._code(analysed, ctx)
        ctx.checkpoint()
        start = perf_counter()
        ctx.emitter.emit(3, 0.0, f"Generating candidate themes ({config.generator})", current_operation="generation")
        outcome = self._registry.generate(
            config,
            analysed,
            coding.codes,
            dict(familiarization.embeddings),
            cancellation=ctx.cancellation,
        )
        ctx.stage_durations["generation"] = perf_counter() - start
        ctx.stage_counts["candidates"] = len(outcome.candidates)
        ctx.emitter.emit(
            3,
            100.0,
            f"Generated {len(outcome.candidates)} candidate theme(s)",
            themes_identified=len(outcome.candidates),
        )

        ctx.advance(ExtractionState.VALIDATING)
        ctx.checkpoint()
        ctx.emitter.emit(4, 0.0, "Reviewing candidate themes", current_operation="validation")
        review = self._validator.validate(outcome.candidates, config)
        ctx.stage_durations["validation"] = review.elapsed_seconds
        ctx.stage_counts["validated"] = len(review.accepted)
        min_confidence = (
            request.options.min_confidence
            if request.options.min_confidence is not None
            else config.min_confidence
        )
        confident = [item for item in review.accepted if item.confidence >= min_confidence]
        low_confidence = len(review.accepted) - len(confident)
        ctx.emitter.emit(
            4,
            100.0,
            f"{len(confident)} theme(s) passed review",
            themes_identified=len(confident),
        )

        ctx.advance(ExtractionState.DEDUPLICATING)
        ctx.checkpoint()
        start = perf_counter()
        ctx.emitter.emit(5, 0.0, "Defining and merging themes", current_operation="deduplication")
        themes = self._define(confident, by_id)
        ranked = sorted(themes, key=lambda theme: (-theme.confidence, -theme.weight, theme.label.lower()))
        truncated = 0
        if request.options.max_themes is not None and len(ranked) > request.options.max_themes:
            truncated = len(ranked) - request.options.max_themes
            ranked = ranked[: request.options.max_themes]
        ctx.stage_durations["deduplication"] = perf_counter() - start
        ctx.stage_counts["themes"] = len(ranked)
        ctx.emitter.emit(5, 100.0, f"Defined {len(ranked)} theme(s)", themes_identified=len(ranked))

        ctx.advance(ExtractionState.REPORTING)
        start = perf_counter()
        ctx.emitter.emit(6, 0.0, "Producing methodology report", current_operation="reporting")
        notices: List[DegradationNotice] = [outcome.notice] if outcome.notice is not None else []
        ctx.failures.extend(coding.failures)
        diagnosis = None
        if not ranked:
            diagnosis = diagnose(
                stats=ctx.familiarization,
                codes_extracted=len(coding.codes),
                rejections=review.rejections,
                config=config,
                policy=self._policies.validation,
            )
            _LOGGER.warning("Extraction produced no themes", diagnosis=diagnosis.kind.value)
        ctx.stage_durations["reporting"] = perf_counter() - start
        report = self._report(
            config,
            ctx,
            generator=outcome.generator_name,
            candidates=len(outcome.candidates),
            rejection_summary=review.rejection_summary,
            diagnostics=review.diagnostics,
            notices=notices,
            metrics=outcome.metrics,
            low_confidence=low_confidence,
            truncated=truncated,
        )
        ctx.emitter.emit(6, 100.0, "Extraction complete", current_operation="complete")
        ctx.advance(ExtractionState.COMPLETE)
        _LOGGER.info(
            "Extraction complete",
            themes=len(ranked),
            candidates=len(outcome.candidates),
            generator=outcome.generator_name,
            degraded=bool(notices),
        )
        return ExtractionResponse(
            run_id=ctx.run_id,
            status=ExtractionStatus.COMPLETE,
            themes=ranked,
            methodology_report=report,
            familiarization_stats=ctx.familiarization,
            diagnosis=diagnosis,
        )

    def _load_sources(self, request: ExtractionRequest, ctx: RunContext) -> List[Source]:
        if request.sources:
            return list(request.sources)
        if not request.source_ids:
            return []
        if self._fetcher is None:
            raise ConfigurationError("Source ids were given but no fetch collaborator is configured")
        sources = self._fetcher.fetch(request.source_ids, cancellation=ctx.cancellation)
        _LOGGER.info("Fetched sources", requested=len(request.source_ids), received=len(sources))
        return sources

    def _familiarize(self, sources: Sequence[Source], ctx: RunContext):
        policy = self._policies.familiarization

        def on_tick(tick: FamiliarizationTick) -> None:
            stats = tick.stats
            ctx.familiarization = stats
            title = sanitize_title(tick.source.title, max_length=policy.title_max_length) or tick.source.id
            operation = "Reading full text" if tick.full_text else "Reading abstract"
            if not tick.succeeded:
                operation = "Skipped (could not be analysed)"
            ctx.emitter.emit(
                1,
                tick.index / tick.total * 100.0,
                f"Reading source {tick.index} of {tick.total}: {title}",
                sources_analyzed=stats.processed_count,
                full_text_read=stats.full_text_count,
                abstracts_read=stats.abstract_count,
                total_words_read=stats.total_words,
                current_article=tick.index,
                total_articles=tick.total,
                article_title=title,
                article_type="full_text" if tick.full_text else "abstract",
                article_words=tick.word_count,
                current_operation=operation,
            )

        ctx.emitter.emit(
            1,
            0.0,
            f"Familiarizing with {len(sources)} source(s)",
            total_articles=len(sources),
            current_operation="familiarization",
        )
        result = FamiliarizationProcessor(self._embedder, policy).run(
            sources, on_tick=on_tick, cancellation=ctx.cancellation
        )
        ctx.familiarization = result.stats
        ctx.failures.extend(result.failures)
        ctx.stage_durations["familiarization"] = result.elapsed_seconds
        ctx.stage_counts["sources"] = result.stats.processed_count
        ctx.stage_counts["sources_analyzed"] = result.stats.embedded_count
        return result

    def _code(self, sources: Sequence[Source], ctx: RunContext):
        def on_tick(tick: CodingTick) -> None:
            ctx.emitter.emit(
                2,
                tick.index / tick.total * 100.0,
                f"Coding source {tick.index} of {tick.total}",
                codes_generated=tick.codes_generated,
                current_operation="coding",
            )

        ctx.emitter.emit(2, 0.0, "Extracting initial codes", current_operation="coding")
        result = CodingProcessor(self._embedder, self._policies.coding).run(
            sources, on_tick=on_tick, cancellation=ctx.cancellation
        )
        ctx.stage_durations["coding"] = result.elapsed_seconds
        ctx.stage_counts["codes"] = len(result.codes)
        return result

    def _define(self, validated: Sequence[ValidatedTheme], sources: Mapping[str, Source]) -> List[UnifiedTheme]:
        """Split each theme by source type and merge the per-type views back together."""

        views: Dict[SourceType, List[UnifiedTheme]] = {}
        for item in validated:
            candidate = item.candidate
            by_type: Dict[SourceType, List[str]] = {}
            for source_id in candidate.source_ids:
                source = sources.get(source_id)
                if source is not None:
                    by_type.setdefault(source.type, []).append(source_id)
            total = sum(len(ids) for ids in by_type.values())
            metrics = dict(candidate.metrics)
            metrics.update(
                {
                    "coherence": item.coherence,
                    "distinctiveness": item.distinctiveness,
                    "evidence_quality": item.evidence_quality,
                }
            )
            for source_type, source_ids in by_type.items():
                allowed = set(source_ids)
                views.setdefault(source_type, []).append(
                    UnifiedTheme(
                        id=candidate.id,
                        label=candidate.label,
                        description=candidate.description,
                        keywords=list(candidate.keywords),
                        source_ids=source_ids,
                        weight=candidate.weight * len(source_ids) / total,
                        confidence=item.confidence,
                        codes=[code for code in candidate.codes if code.source_id in allowed],
                        origin=candidate.origin,
                        metrics=metrics,
                    )
                )
        groups = [
            SourceTypeGroup(
                type=source_type,
                themes=themes,
                source_ids=[sid for sid, source in sources.items() if source.type == source_type],
            )
            for source_type, themes in views.items()
        ]
        return merge_from_sources(groups, sources=sources, policy=self._policies.deduplication)

    def _report(
        self,
        config: PurposeConfig,
        ctx: RunContext,
        *,
        generator: str,
        candidates: int,
        rejection_summary: Dict[str, int],
        diagnostics: RejectionDiagnostics | None,
        notices: List[DegradationNotice],
        metrics: Dict[str, Any],
        low_confidence: int,
        truncated: int,
    ) -> MethodologyReport:
        return MethodologyReport(
            purpose=config.purpose,
            scientific_method=config.scientific_method,
            validation_level=config.validation_level,
            generator=generator,
            target_theme_count=(config.target_theme_count.minimum, config.target_theme_count.maximum),
            stage_durations={key: round(value, 6) for key, value in ctx.stage_durations.items()},
            stage_counts=dict(ctx.stage_counts),
            candidates_generated_count=candidates,
            rejection_summary=rejection_summary,
            rejection_diagnostics=diagnostics,
            degradation_notices=notices,
            failed_sources=list(ctx.failures),
            algorithm_metrics=metrics,
            low_confidence_filtered=low_confidence,
            themes_truncated=truncated,
        )

    def _terminal_response(
        self, ctx: RunContext, status: ExtractionStatus, exc: ThematicError
    ) -> ExtractionResponse:
        ctx.emitter.close()
        return ExtractionResponse(
            run_id=ctx.run_id,
            status=status,
            familiarization_stats=ctx.familiarization,
            error=ExtractionErrorInfo(kind=exc.kind, message=exc.message),
        )


def run_extraction(
    request: ExtractionRequest | Mapping[str, Any],
    *,
    embed: EmbedFn,
    generate: GenerateFn | None = None,
    fetch: FetchFn | None = None,
    settings: Settings | None = None,
    on_progress: ProgressCallback | None = None,
    cancellation: CancellationToken | None = None,
) -> ExtractionResponse:
    """Build an orchestrator from settings, run one extraction, and release its clients."""

    if not isinstance(request, ExtractionRequest):
        request = ExtractionRequest.from_payload(request)
    cfg = settings or get_settings()
    with ExtractionOrchestrator.from_settings(cfg, embed=embed, generate=generate, fetch=fetch) as orchestrator:
        return orchestrator.run(request, on_progress=on_progress, cancellation=cancellation)


__all__ = [
    "ExtractionOptions",
    "ExtractionOrchestrator",
    "ExtractionRequest",
    "RunContext",
    "run_extraction",
]
