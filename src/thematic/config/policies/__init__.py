"""Policy configuration primitives for the extraction pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Sequence

import yaml
from pydantic import BaseModel, Field, model_validator

from ...entities.core import ResearchPurpose
from .llm import DEFAULT_LABEL_TEMPLATE, LLMPolicy
from .pipeline import (
    ClusteringPolicy,
    CodingPolicy,
    DeduplicationPolicy,
    FamiliarizationPolicy,
    ValidationPolicy,
)
from .purposes import (
    CONTENT_PRIORITY_WORD_COUNTS,
    DEFAULT_PURPOSE_CONFIGS,
    FullTextRequirement,
    PaperLimits,
    PurposeConfig,
    QualityThreshold,
    QualityWeights,
    Range,
)
from .synthesis import GroundedTheoryPolicy, MetaEthnographyPolicy


def _merge_mapping(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = _merge_mapping(dict(result[key]), value)
        else:
            result[key] = value
    return result


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2025-10-01")
    purposes: Dict[ResearchPurpose, PurposeConfig] = Field(
        default_factory=lambda: dict(DEFAULT_PURPOSE_CONFIGS)
    )
    familiarization: FamiliarizationPolicy = Field(default_factory=FamiliarizationPolicy)
    coding: CodingPolicy = Field(default_factory=CodingPolicy)
    clustering: ClusteringPolicy = Field(default_factory=ClusteringPolicy)
    validation: ValidationPolicy = Field(default_factory=ValidationPolicy)
    deduplication: DeduplicationPolicy = Field(default_factory=DeduplicationPolicy)
    meta_ethnography: MetaEthnographyPolicy = Field(default_factory=MetaEthnographyPolicy)
    grounded_theory: GroundedTheoryPolicy = Field(default_factory=GroundedTheoryPolicy)
    llm: LLMPolicy = Field(default_factory=LLMPolicy)

    @model_validator(mode="before")
    @classmethod
    def _overlay_purpose_defaults(cls, values: Any) -> Any:
        """Allow partial purpose overrides layered on top of the built-in table."""

        if not isinstance(values, Mapping):
            return values
        overrides = values.get("purposes")
        if not isinstance(overrides, Mapping):
            return values
        merged: Dict[str, Any] = {}
        for purpose, config in DEFAULT_PURPOSE_CONFIGS.items():
            merged[purpose.value] = config.model_dump()
        for key, override in overrides.items():
            name = key.value if isinstance(key, ResearchPurpose) else str(key)
            if isinstance(override, PurposeConfig):
                merged[name] = override.model_dump()
            elif isinstance(override, Mapping):
                merged[name] = _merge_mapping(merged.get(name, {}), override)
            else:
                merged[name] = override
        updated = dict(values)
        updated["purposes"] = merged
        return updated

    @model_validator(mode="after")
    def _validate_policy_version(self) -> "Policies":
        if not self.policy_version:
            raise ValueError("policy_version must be provided")
        return self


def _ensure_nested_mapping(
    cursor: MutableMapping[str, Any], part: str, full_path: Sequence[str]
) -> MutableMapping[str, Any]:
    existing = cursor.get(part)
    if existing is None:
        next_cursor: MutableMapping[str, Any] = {}
        cursor[part] = next_cursor
        return next_cursor
    if not isinstance(existing, MutableMapping):
        raise ValueError(
            f"Cannot override policy path '{'/'.join(full_path)}' because segment "
            f"'{part}' resolves to a non-mapping value"
        )
    return existing


def _resolve_env_overrides(raw: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Apply ``THEMATIC_POLICY__`` environment variable overrides.

    ``THEMATIC_POLICY__VALIDATION__MIN_EVIDENCE_QUALITY=0.4`` sets
    ``validation.min_evidence_quality``. Values are JSON-decoded when possible
    and kept as raw strings otherwise.
    """

    prefix = "THEMATIC_POLICY__"
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        parts = [segment.lower() for segment in key[len(prefix) :].split("__") if segment]
        if not parts:
            continue
        cursor: MutableMapping[str, Any] = raw
        for index, part in enumerate(parts[:-1], start=1):
            cursor = _ensure_nested_mapping(cursor, part, parts[: index + 1])
        try:
            parsed = json.loads(value)
        except (TypeError, json.JSONDecodeError):
            parsed = value
        cursor[parts[-1]] = parsed
    return raw


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any]) -> Policies:
    """Load policies from a mapping or YAML file with environment overrides."""

    if isinstance(source, Mapping):
        raw: MutableMapping[str, Any] = dict(source)
    else:
        path = Path(source)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, MutableMapping):
            raise ValueError(f"Policy file '{path}' must contain a mapping at the top level")
        raw = dict(loaded)
    hydrated = _resolve_env_overrides(raw)
    return Policies.model_validate(dict(hydrated))


__all__ = [
    "Policies",
    "load_policies",
    "PurposeConfig",
    "PaperLimits",
    "QualityWeights",
    "QualityThreshold",
    "FullTextRequirement",
    "Range",
    "DEFAULT_PURPOSE_CONFIGS",
    "CONTENT_PRIORITY_WORD_COUNTS",
    "FamiliarizationPolicy",
    "CodingPolicy",
    "ClusteringPolicy",
    "ValidationPolicy",
    "DeduplicationPolicy",
    "MetaEthnographyPolicy",
    "GroundedTheoryPolicy",
    "LLMPolicy",
    "DEFAULT_LABEL_TEMPLATE",
]
