"""Resolution and startup validation of purpose configuration bundles."""

from __future__ import annotations

from typing import Dict, List, Mapping

from ..entities.core import ResearchPurpose
from ..errors import InvalidConfigError, UnknownPurposeError
from .policies.purposes import (
    CONTENT_PRIORITY_WORD_COUNTS,
    DEFAULT_PURPOSE_CONFIGS,
    PurposeConfig,
)

_WEIGHT_TOLERANCE = 1e-6


def _config_problems(purpose: ResearchPurpose, config: PurposeConfig) -> List[str]:
    problems: List[str] = []
    if config.purpose != purpose:
        problems.append(f"declares purpose '{config.purpose.value}'")
    total = config.quality_weights.total
    if abs(total - 1.0) > _WEIGHT_TOLERANCE:
        problems.append(f"quality weights sum to {total:.4f}, expected 1.0")
    limits = config.paper_limits
    if not limits.minimum <= limits.target <= limits.maximum:
        problems.append(
            f"paper limits violate min <= target <= max ({limits.minimum}/{limits.target}/{limits.maximum})"
        )
    themes = config.target_theme_count
    if themes.minimum > themes.maximum:
        problems.append(f"theme count range {themes.minimum}-{themes.maximum} is inverted")
    if themes.maximum < 1:
        problems.append("theme count maximum must be at least 1")
    threshold = config.quality_threshold
    if threshold.minimum > threshold.initial:
        problems.append(
            f"quality threshold minimum {threshold.minimum} exceeds initial {threshold.initial}"
        )
    return problems


def validate_purpose_configs(configs: Mapping[ResearchPurpose, PurposeConfig]) -> None:
    """Fail fast with :class:`InvalidConfigError` if any purpose bundle is malformed."""

    missing = [purpose.value for purpose in ResearchPurpose if purpose not in configs]
    if missing:
        raise InvalidConfigError(f"Missing configuration for purpose(s): {', '.join(missing)}")
    for purpose in ResearchPurpose:
        problems = _config_problems(purpose, configs[purpose])
        if problems:
            raise InvalidConfigError(
                f"Invalid configuration for {purpose.value}: {'; '.join(problems)}"
            )


def _coerce_purpose(purpose: ResearchPurpose | str) -> ResearchPurpose:
    if isinstance(purpose, ResearchPurpose):
        return purpose
    try:
        return ResearchPurpose(purpose)
    except ValueError:
        raise UnknownPurposeError(purpose, [member.value for member in ResearchPurpose]) from None


class PurposeResolver:
    """Validated, read-only lookup from research purpose to its configuration."""

    def __init__(self, configs: Mapping[ResearchPurpose, PurposeConfig] | None = None) -> None:
        table = dict(configs if configs is not None else DEFAULT_PURPOSE_CONFIGS)
        validate_purpose_configs(table)
        self._configs: Dict[ResearchPurpose, PurposeConfig] = table

    def resolve(self, purpose: ResearchPurpose | str) -> PurposeConfig:
        return self._configs[_coerce_purpose(purpose)]

    def __iter__(self):
        return iter(self._configs.items())

    @property
    def purposes(self) -> List[ResearchPurpose]:
        return list(self._configs)


_DEFAULT_RESOLVER: PurposeResolver | None = None


def resolve(purpose: ResearchPurpose | str) -> PurposeConfig:
    """Return the built-in configuration bundle for ``purpose``."""

    global _DEFAULT_RESOLVER
    if _DEFAULT_RESOLVER is None:
        _DEFAULT_RESOLVER = PurposeResolver()
    return _DEFAULT_RESOLVER.resolve(purpose)


def content_priority_word_count(priority: str) -> int:
    try:
        return CONTENT_PRIORITY_WORD_COUNTS[priority]
    except KeyError:
        raise InvalidConfigError(f"Unknown content priority '{priority}'") from None


__all__ = [
    "PurposeResolver",
    "resolve",
    "validate_purpose_configs",
    "content_priority_word_count",
]
