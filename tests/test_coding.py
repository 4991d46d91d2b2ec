"""Tests for frequency-based initial coding."""

from __future__ import annotations

from typing import List

from thematic.config.policies import CodingPolicy
from thematic.entities.core import Source, SourceType
from thematic.llm.client import EmbeddingClient
from thematic.pipeline.coding import CodeExtractor, CodingProcessor, CodingTick

TEXT = (
    "Remote collaboration depends on trust between distributed colleagues. "
    "Teams practising remote collaboration reported weekly video rituals. "
    "Managers considered remote collaboration harder for onboarding newcomers. "
    "Short. "
    "Asynchronous updates reduced meeting fatigue across time zones."
)


def make_source(content: str = TEXT, *, title: str = "Hybrid teams study") -> Source:
    return Source(id="s1", type=SourceType.PAPER, title=title, content=content)


def test_extractor_builds_bigram_and_keyword_codes() -> None:
    drafts = CodeExtractor().extract(make_source())
    labels = [draft.label for draft in drafts]

    assert labels[0] == "Remote Collaboration"
    assert "Remote" in labels
    assert all(label == label.title() or " " not in label for label in labels)
    first = drafts[0]
    assert first.source_id == "s1"
    assert len(first.excerpts) == 3
    assert all("remote collaboration" in excerpt.lower() for excerpt in first.excerpts)
    assert "Hybrid teams study" in first.description


def test_extractor_limits_excerpts_and_truncates() -> None:
    sentence = "Budget pressure shaped every staffing decision " + "considerably " * 40
    content = ". ".join([sentence] * 5) + "."
    policy = CodingPolicy(max_excerpts_per_code=2, max_excerpt_length=80)

    drafts = CodeExtractor(policy).extract(make_source(content))

    assert drafts
    for draft in drafts:
        assert len(draft.excerpts) <= 2
        assert all(len(excerpt) <= 83 for excerpt in draft.excerpts)


def test_extractor_returns_nothing_for_short_content() -> None:
    assert CodeExtractor().extract(make_source("Too short.")) == []


def test_extractor_never_joins_words_across_sentences() -> None:
    content = "Alpha beta gamma delta epsilon words. Zeta theta iota kappa lambda words."
    drafts = CodeExtractor().extract(make_source(content))

    assert all(draft.label.lower() != "epsilon words zeta" for draft in drafts)
    assert "Words Zeta" not in [draft.label for draft in drafts]


def test_processor_embeds_labels_and_assigns_sequential_ids() -> None:
    embedded: List[str] = []

    def embed(text: str) -> List[float]:
        embedded.append(text)
        return [float(len(text)), 1.0]

    ticks: List[CodingTick] = []
    result = CodingProcessor(EmbeddingClient(embed)).run([make_source()], on_tick=ticks.append)

    assert result.codes
    assert [code.id for code in result.codes][:2] == ["code-00001", "code-00002"]
    assert embedded == [code.label for code in result.codes]
    assert all(code.source_id == "s1" for code in result.codes)
    assert ticks[-1].codes_generated == len(result.codes)
    assert result.codes_by_source()["s1"] == result.codes


def test_processor_drops_codes_whose_embedding_fails() -> None:
    def embed(text: str) -> List[float]:
        if text == "Remote":
            raise ValueError("cannot embed")
        return [1.0, 0.0]

    result = CodingProcessor(EmbeddingClient(embed)).run([make_source()])

    assert "Remote" not in [code.label for code in result.codes]
    assert len(result.failures) == 1
    assert result.failures[0].stage == "coding"
    assert "Remote" in result.failures[0].reason


def test_processor_skips_ineligible_sources() -> None:
    other = Source(id="s2", type=SourceType.VIDEO, content=TEXT)

    result = CodingProcessor(EmbeddingClient(lambda text: [1.0])).run(
        [make_source(), other], eligible_ids={"s2"}
    )

    assert {code.source_id for code in result.codes} == {"s2"}
    assert result.sources_coded == 1
