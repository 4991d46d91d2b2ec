"""Tests for the meta-ethnography and grounded-theory generators."""

from __future__ import annotations

from typing import List

import pytest

from thematic.config.purposes import resolve
from thematic.entities.core import Code, Source, SourceType
from thematic.errors import GeneratorUnavailableError
from thematic.pipeline.generation import GroundedTheoryGenerator, MetaEthnographyGenerator
from thematic.pipeline.generation.grounded_theory import (
    PARADIGM_INDICATORS,
    code_properties,
    extract_in_vivo,
    paradigm_component,
    word_overlap,
)
from thematic.pipeline.generation.meta_ethnography import contradiction_severity, contradiction_type


def unit(index: int, dimensions: int = 4) -> List[float]:
    vector = [0.0] * dimensions
    vector[index] = 1.0
    return vector


# -- meta-ethnography --------------------------------------------------------


def test_meta_ethnography_requires_two_studies() -> None:
    codes = [Code(id="c1", source_id="s1", label="Trust", embedding=[1.0, 0.0])]

    with pytest.raises(GeneratorUnavailableError, match="at least 2 studies"):
        MetaEthnographyGenerator().generate([], codes, {}, resolve("literature_synthesis"))


def test_line_of_argument_spans_all_studies() -> None:
    codes = [
        Code(
            id=f"c{index}",
            source_id=f"s{index}",
            label="Trust",
            excerpts=["Participants described trust as fragile."],
            embedding=[1.0, 0.0],
        )
        for index in range(3)
    ]
    generator = MetaEthnographyGenerator()

    candidates = generator.generate([], codes, {}, resolve("literature_synthesis"))

    assert len(candidates) == 1
    theme = candidates[0]
    assert theme.label == "Trust"
    assert theme.source_ids == ["s0", "s1", "s2"]
    assert theme.details["synthesis_method"] == "line_of_argument"
    assert theme.metrics["study_coverage"] == pytest.approx(1.0)
    assert theme.metrics["consensus_strength"] == pytest.approx(1.0)
    assert theme.details["translation_completeness_by_source"] == {"s0": 1.0, "s1": 1.0, "s2": 1.0}
    assert generator.last_metrics["translation_completeness"] == pytest.approx(1.0)
    assert generator.last_metrics["reciprocal_translations"] == 6


def test_refutational_synthesis_flags_contested_findings() -> None:
    codes = [
        Code(
            id="a",
            source_id="s1",
            label="Remote Trust",
            description="However remote trust declined sharply.",
            excerpts=["Remote trust declined sharply."],
            embedding=[1.0, 0.0],
        ),
        Code(
            id="b",
            source_id="s2",
            label="Office Trust",
            excerpts=["Office trust improved."],
            embedding=[0.2, 0.96 ** 0.5],
        ),
    ]
    generator = MetaEthnographyGenerator()

    candidates = generator.generate([], codes, {}, resolve("literature_synthesis"))

    labels = sorted(candidate.label for candidate in candidates)
    assert labels == ["Contested: Office Trust", "Contested: Remote Trust"]
    for candidate in candidates:
        assert candidate.details["synthesis_method"] == "refutational"
        assert candidate.details["contradiction_type"] == "direct"
        assert candidate.metrics["synthesis_confidence"] == pytest.approx(0.29)
    assert generator.last_metrics["contradiction_resolution_rate"] == pytest.approx(1.0)


def test_unrelated_concepts_are_not_contested() -> None:
    codes = [
        Code(
            id="c1",
            source_id="s1",
            label="Sleep Quality",
            description="However, shift workers disagree about rest.",
            excerpts=["However sleep quality dropped on night shifts."],
            embedding=unit(0),
        ),
        Code(
            id="c2",
            source_id="s2",
            label="Tax Policy",
            excerpts=["The conflict over tax policy grew."],
            embedding=unit(1),
        ),
        Code(id="c3", source_id="s3", label="Coral Bleaching", excerpts=["Reefs bleached."], embedding=unit(2)),
    ]
    generator = MetaEthnographyGenerator()

    candidates = generator.generate([], codes, {}, resolve("literature_synthesis"))

    assert candidates == []
    assert generator.last_metrics["contradiction_resolution_rate"] == pytest.approx(1.0)


def test_contradiction_markers_in_excerpts_are_ignored() -> None:
    codes = [
        Code(id="a", source_id="s1", label="Remote Trust", excerpts=["However trust fell."], embedding=[1.0, 0.0]),
        Code(id="b", source_id="s2", label="Office Trust", excerpts=["Trust rose."], embedding=[0.2, 0.96 ** 0.5]),
    ]

    candidates = MetaEthnographyGenerator().generate([], codes, {}, resolve("literature_synthesis"))

    assert candidates == []


def test_contradiction_helpers() -> None:
    assert contradiction_type("measurement differed", "trust") == "methodological"
    assert contradiction_type("rural setting", "trust") == "contextual"
    assert contradiction_type("attitudes changed", "trust") == "temporal"
    assert contradiction_type("however", "trust") == "direct"
    assert contradiction_severity(0.0, 4) == pytest.approx(1.0)
    assert contradiction_severity(1.0, 0) == pytest.approx(0.0)


# -- grounded theory -----------------------------------------------------------


def grounded_codes() -> List[Code]:
    labels = ["Burnout", "Autonomy", "Recognition", "Workload"]
    codes: List[Code] = []
    for concept, label in enumerate(labels):
        for copy in range(2):
            codes.append(
                Code(
                    id=f"c{concept}{copy}",
                    source_id=f"s{copy}",
                    label=label,
                    excerpts=[f"Staff mentioned {label.lower()} often."],
                    embedding=unit(concept),
                )
            )
    return codes


def test_grounded_theory_builds_categories_with_one_core() -> None:
    generator = GroundedTheoryGenerator()

    candidates = generator.generate([], grounded_codes(), {}, resolve("hypothesis_generation"))

    assert [candidate.label for candidate in candidates] == ["Burnout", "Autonomy", "Recognition"]
    first = candidates[0]
    assert {code.label for code in first.codes} == {"Burnout", "Workload"}
    assert first.weight == pytest.approx(0.5)
    assert [candidate.details["core_category"] for candidate in candidates] == [True, False, False]
    assert all(candidate.metrics["theoretical_saturation"] == 0.0 for candidate in candidates)
    assert [candidate.details["role"] for candidate in candidates[1:]] == ["context", "context"]
    assert generator.last_metrics["core_category"] == "Burnout"
    assert generator.last_metrics["storyline"].startswith('The central phenomenon of "Burnout"')


def test_grounded_theory_requires_recurring_codes() -> None:
    codes = [
        Code(id=f"c{index}", source_id="s1", label=f"Concept {index}", embedding=unit(index))
        for index in range(4)
    ]

    with pytest.raises(GeneratorUnavailableError, match="recurring codes"):
        GroundedTheoryGenerator().generate([], codes, {}, resolve("hypothesis_generation"))


def test_grounded_theory_reads_paradigm_from_sources() -> None:
    sources = [
        Source(
            id="s0",
            type=SourceType.PAPER,
            content="Burnout increased because workload grew without relief for nurses.",
        )
    ]

    candidates = GroundedTheoryGenerator().generate(sources, grounded_codes(), {}, resolve("hypothesis_generation"))

    paradigm = candidates[0].details["paradigm"]
    assert set(paradigm) == set(PARADIGM_INDICATORS)


def test_paradigm_component_finds_causal_clause() -> None:
    text = "Burnout increased because remote work blurred boundaries between home and office."

    components = paradigm_component("remote work", text, PARADIGM_INDICATORS["causal_conditions"])

    assert components
    assert "remote work blurred boundaries" in components[0]


def test_in_vivo_and_properties() -> None:
    assert extract_in_vivo('One nurse said "always on call" every week.') == ["always on call"]
    assert code_properties("they were very tired and sometimes angry") == {
        "intensity": "high",
        "frequency": "occasional",
    }
    assert word_overlap(["rising patient workload"], ["patient workload pressure"])
    assert word_overlap(["rising costs"], ["falling morale"]) == []
