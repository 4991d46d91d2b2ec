"""Explain why an extraction produced no themes."""

from __future__ import annotations

from typing import Sequence

from ...config.policies import PurposeConfig, ValidationPolicy
from ...entities.reports import Diagnosis, DiagnosisKind, FamiliarizationStats, RejectedTheme


def diagnose(
    *,
    stats: FamiliarizationStats,
    codes_extracted: int,
    rejections: Sequence[RejectedTheme],
    config: PurposeConfig,
    policy: ValidationPolicy | None = None,
) -> Diagnosis:
    """Pick the most likely cause of an empty result.

    Short content is checked first because it starves every later stage.
    Topic diversity is inferred from rejections dominated by the source-count
    and coherence gates. Anything else points at the thresholds.
    """

    policy = policy or ValidationPolicy()
    analysed = stats.processed_count - stats.failed_count
    mean_words = stats.total_words / analysed if analysed > 0 else 0.0
    if codes_extracted == 0 or mean_words < policy.short_content_words:
        return Diagnosis(
            kind=DiagnosisKind.CONTENT_TOO_SHORT,
            message=(
                f"Sources average {mean_words:.0f} words and yielded {codes_extracted} code(s); "
                "there is too little text to identify recurring patterns."
            ),
            recommendations=[
                "Provide full text or longer abstracts for the selected sources.",
                f"Aim for at least {policy.short_content_words} words per source.",
                "Remove sources that only carry a title.",
            ],
        )

    diverse = sum(1 for rejection in rejections if rejection.failed_gate in {"sources", "coherence"})
    if rejections and diverse / len(rejections) >= policy.diverse_rejection_ratio:
        return Diagnosis(
            kind=DiagnosisKind.TOPICS_TOO_DIVERSE,
            message=(
                f"{diverse} of {len(rejections)} candidate theme(s) lacked shared support across sources; "
                "the sources cover topics that rarely overlap."
            ),
            recommendations=[
                "Select sources that address a common research question.",
                f"Include at least {config.min_sources} sources per expected theme.",
                "Choose a purpose with a lower source requirement, such as qualitative_analysis.",
            ],
        )

    return Diagnosis(
        kind=DiagnosisKind.THRESHOLDS_TOO_STRICT,
        message=(
            f"Candidate themes were found but none met the {config.validation_level} "
            f"validation thresholds for {config.purpose.value}."
        ),
        recommendations=[
            "Lower min_confidence for this request.",
            "Choose a purpose with exploratory or standard validation.",
            "Add more sources to strengthen the evidence for each theme.",
        ],
    )


__all__ = ["diagnose"]
