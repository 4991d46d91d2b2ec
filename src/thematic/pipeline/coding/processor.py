"""Initial coding: extract codes per source and embed their labels."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Callable, Collection, Dict, List, Optional, Sequence

from ...config.policies import CodingPolicy
from ...entities.core import Code, Source
from ...entities.reports import SourceFailure
from ...errors import ProviderError
from ...llm.client import EmbeddingClient
from ...utils.cancellation import CancellationToken
from ...utils.logging import get_logger
from .extractor import CodeExtractor

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class CodingTick:
    index: int
    total: int
    source: Source
    codes_generated: int


@dataclass(slots=True)
class CodingResult:
    codes: List[Code]
    failures: List[SourceFailure] = field(default_factory=list)
    sources_coded: int = 0
    sources_without_codes: int = 0
    elapsed_seconds: float = 0.0

    def codes_by_source(self) -> Dict[str, List[Code]]:
        grouped: Dict[str, List[Code]] = {}
        for code in self.codes:
            grouped.setdefault(code.source_id, []).append(code)
        return grouped


class CodingProcessor:
    """Turn sources into embedded :class:`Code` objects.

    Sources whose familiarization failed are skipped; a failed label embedding
    drops only that code.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        policy: CodingPolicy | None = None,
        *,
        extractor: CodeExtractor | None = None,
    ) -> None:
        self._embedder = embedder
        self._policy = policy or CodingPolicy()
        self._extractor = extractor or CodeExtractor(self._policy)

    def run(
        self,
        sources: Sequence[Source],
        *,
        eligible_ids: Optional[Collection[str]] = None,
        on_tick: Callable[[CodingTick], None] | None = None,
        cancellation: CancellationToken | None = None,
    ) -> CodingResult:
        start = perf_counter()
        codes: List[Code] = []
        failures: List[SourceFailure] = []
        coded = 0
        empty = 0
        sequence = 0
        targets = [
            source for source in sources if eligible_ids is None or source.id in eligible_ids
        ]
        for index, source in enumerate(targets, start=1):
            drafts = self._extractor.extract(source)
            coded += 1
            produced = 0
            for draft in drafts:
                if cancellation is not None:
                    cancellation.raise_if_cancelled()
                try:
                    vector = self._embedder.embed(draft.label, cancellation=cancellation)
                except ProviderError as exc:
                    failures.append(
                        SourceFailure(
                            source_id=source.id,
                            stage="coding",
                            reason=f"code '{draft.label}': {exc}",
                        )
                    )
                    _LOGGER.warning(
                        "Code embedding failed", source_id=source.id, label=draft.label, error=str(exc)
                    )
                    continue
                sequence += 1
                codes.append(
                    Code(
                        id=f"code-{sequence:05d}",
                        source_id=draft.source_id,
                        label=draft.label,
                        description=draft.description,
                        excerpts=draft.excerpts,
                        embedding=vector,
                    )
                )
                produced += 1
            if produced == 0:
                empty += 1
            if on_tick is not None:
                on_tick(CodingTick(index=index, total=len(targets), source=source, codes_generated=len(codes)))

        elapsed = perf_counter() - start
        _LOGGER.info(
            "Initial coding finished",
            sources=coded,
            codes=len(codes),
            sources_without_codes=empty,
            elapsed_seconds=round(elapsed, 4),
        )
        return CodingResult(
            codes=codes,
            failures=failures,
            sources_coded=coded,
            sources_without_codes=empty,
            elapsed_seconds=elapsed,
        )


__all__ = ["CodingProcessor", "CodingResult", "CodingTick"]
