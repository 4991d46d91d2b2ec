"""Quality gates applied to candidate themes."""

from __future__ import annotations

from dataclasses import dataclass, field
from time import perf_counter
from typing import Dict, List, Sequence

from ...config.policies import PurposeConfig, ValidationPolicy
from ...entities.core import CandidateTheme
from ...entities.reports import GateCheck, RejectedTheme, RejectionDiagnostics
from ...utils.logging import get_logger
from ...utils.similarity import average_pairwise_similarity, keyword_jaccard

_LOGGER = get_logger(module=__name__)

GATE_ORDER = ("sources", "coherence", "distinctiveness", "evidence")


@dataclass(slots=True)
class ValidatedTheme:
    """An accepted candidate and the scores that let it through."""

    candidate: CandidateTheme
    coherence: float
    distinctiveness: float
    evidence_quality: float
    confidence: float


@dataclass(slots=True)
class ValidationReport:
    accepted: List[ValidatedTheme]
    rejections: List[RejectedTheme]
    stats: Dict[str, int] = field(default_factory=dict)
    diagnostics: RejectionDiagnostics | None = None
    elapsed_seconds: float = 0.0

    @property
    def rejection_summary(self) -> Dict[str, int]:
        summary = {gate: 0 for gate in GATE_ORDER}
        for rejection in self.rejections:
            summary[rejection.failed_gate] += 1
        return summary


def evidence_quality(candidate: CandidateTheme) -> float:
    """Fraction of the candidate's codes that carry at least one excerpt."""

    if not candidate.codes:
        return 0.0
    return sum(1 for code in candidate.codes if code.has_evidence) / len(candidate.codes)


def coherence(candidate: CandidateTheme) -> float:
    return average_pairwise_similarity([code.embedding for code in candidate.codes])


class ThemeValidator:
    """Run every candidate through the source, coherence, distinctiveness and evidence gates.

    Gates never raise; a failing candidate is recorded with the actual and
    required value of every gate so callers can explain the rejection.
    """

    def __init__(self, policy: ValidationPolicy | None = None) -> None:
        self._policy = policy or ValidationPolicy()

    def thresholds(self, config: PurposeConfig) -> Dict[str, float]:
        return {
            "sources": float(config.min_sources),
            "coherence": config.min_coherence,
            "distinctiveness": self._policy.min_distinctiveness,
            "evidence": self._policy.min_evidence_quality,
        }

    def confidence(self, coherence_score: float, evidence_score: float, distinctiveness_score: float) -> float:
        policy = self._policy
        value = (
            policy.coherence_weight * coherence_score
            + policy.evidence_weight * evidence_score
            + policy.distinctiveness_weight * distinctiveness_score
        )
        return min(1.0, max(0.0, value))

    def validate(self, candidates: Sequence[CandidateTheme], config: PurposeConfig) -> ValidationReport:
        start = perf_counter()
        required = self.thresholds(config)
        ordered = sorted(candidates, key=lambda c: (-c.weight, c.label.lower(), c.id))
        accepted: List[ValidatedTheme] = []
        rejections: List[RejectedTheme] = []

        for candidate in ordered:
            overlaps = [keyword_jaccard(candidate.keywords, kept.candidate.keywords) for kept in accepted]
            actual = {
                "sources": float(len(candidate.source_ids)),
                "coherence": coherence(candidate),
                "distinctiveness": 1.0 - max(overlaps, default=0.0),
                "evidence": evidence_quality(candidate),
            }
            checks = {
                gate: GateCheck(actual=actual[gate], required=required[gate], passed=actual[gate] >= required[gate])
                for gate in GATE_ORDER
            }
            failed = [gate for gate in GATE_ORDER if not checks[gate].passed]
            if failed:
                rejections.append(
                    RejectedTheme(
                        theme_id=candidate.id,
                        label=candidate.label,
                        failed_gate=failed[0],
                        checks=checks,
                        failure_reasons=[
                            f"{gate}: {actual[gate]:.2f} < {required[gate]:.2f}" for gate in failed
                        ],
                    )
                )
                _LOGGER.debug(
                    "Candidate rejected",
                    theme_id=candidate.id,
                    label=candidate.label,
                    failed_gate=failed[0],
                )
                continue
            accepted.append(
                ValidatedTheme(
                    candidate=candidate,
                    coherence=actual["coherence"],
                    distinctiveness=actual["distinctiveness"],
                    evidence_quality=actual["evidence"],
                    confidence=self.confidence(actual["coherence"], actual["evidence"], actual["distinctiveness"]),
                )
            )

        report = ValidationReport(
            accepted=accepted,
            rejections=rejections,
            stats={
                "generated": len(ordered),
                "validated": len(accepted),
                "rejected": len(rejections),
            },
            elapsed_seconds=perf_counter() - start,
        )
        report.diagnostics = self._diagnostics(report, required)
        _LOGGER.info(
            "Theme review finished",
            purpose=config.purpose.value,
            **report.stats,
            **{f"rejected_{gate}": count for gate, count in report.rejection_summary.items()},
        )
        return report

    def _diagnostics(self, report: ValidationReport, thresholds: Dict[str, float]) -> RejectionDiagnostics:
        limit = self._policy.max_rejection_samples
        summary = report.rejection_summary
        recommendations: List[str] = []
        if summary["sources"]:
            recommendations.append(
                f"{summary['sources']} theme(s) lacked enough supporting sources; add more sources on the same topic."
            )
        if summary["coherence"]:
            recommendations.append(
                f"{summary['coherence']} theme(s) were not coherent enough; narrow the source set to a tighter topic."
            )
        if summary["distinctiveness"]:
            recommendations.append(
                f"{summary['distinctiveness']} theme(s) overlapped an accepted theme."
            )
        if summary["evidence"]:
            recommendations.append(
                f"{summary['evidence']} theme(s) had too little supporting evidence; provide full text where possible."
            )
        return RejectionDiagnostics(
            total_generated=report.stats["generated"],
            total_rejected=report.stats["rejected"],
            total_validated=report.stats["validated"],
            thresholds=thresholds,
            rejected_themes=report.rejections[:limit],
            more_rejected_count=max(0, len(report.rejections) - limit),
            recommendations=recommendations,
        )


__all__ = [
    "GATE_ORDER",
    "ThemeValidator",
    "ValidatedTheme",
    "ValidationReport",
    "coherence",
    "evidence_quality",
]
