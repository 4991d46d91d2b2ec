"""Tests for the guarded collaborator clients and the offline embedder."""

from __future__ import annotations

import math
import time
from typing import List

import pytest

from thematic.config.policies import LLMPolicy
from thematic.entities.core import Code, Source, SourceType
from thematic.errors import ExtractionCancelled, ProviderError, ProviderTimeoutError
from thematic.llm import EmbeddingClient, HashingEmbedder, LabelPrompt, SourceFetcher, TextGenerator, clean_label
from thematic.utils.cancellation import CancellationToken


def test_retryable_errors_are_retried() -> None:
    attempts: List[str] = []

    def embed(text: str) -> List[float]:
        attempts.append(text)
        if len(attempts) < 3:
            raise ProviderError("throttled", retryable=True)
        return [1.0, 2.0]

    client = EmbeddingClient(embed, retry_attempts=2, retry_backoff_seconds=0.0)

    assert client.embed("hello") == [1.0, 2.0]
    assert len(attempts) == 3
    assert client.stats["retries"] == 2
    assert client.stats["failures"] == 2


def test_retries_are_bounded() -> None:
    def embed(text: str) -> List[float]:
        raise ProviderError("throttled", retryable=True)

    client = EmbeddingClient(embed, retry_attempts=1)

    with pytest.raises(ProviderError, match="throttled"):
        client.embed("hello")
    assert client.stats["calls"] == 2


def test_unexpected_errors_are_not_retried() -> None:
    calls: List[str] = []

    def embed(text: str) -> List[float]:
        calls.append(text)
        raise KeyError("missing field")

    client = EmbeddingClient(embed, retry_attempts=3)

    with pytest.raises(ProviderError) as excinfo:
        client.embed("hello")
    assert len(calls) == 1
    assert not excinfo.value.retryable
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_timeout_raises_provider_timeout() -> None:
    def slow(text: str) -> List[float]:
        time.sleep(0.5)
        return [1.0]

    with EmbeddingClient(slow, timeout_seconds=0.05) as client:
        with pytest.raises(ProviderTimeoutError, match="timeout"):
            client.embed("hello")
        assert client.stats["timeouts"] == 1


def test_cancellation_is_checked_before_calling() -> None:
    token = CancellationToken()
    token.cancel("user requested")
    called: List[str] = []

    client = EmbeddingClient(lambda text: called.append(text) or [1.0])

    with pytest.raises(ExtractionCancelled):
        client.embed("hello", cancellation=token)
    assert called == []


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        (None, "no vector"),
        ([], "empty vector"),
        (["a", "b"], "non-numeric"),
        ([1.0, math.inf], "non-finite"),
    ],
)
def test_invalid_vectors_are_rejected(raw, message) -> None:
    client = EmbeddingClient(lambda text: raw)

    with pytest.raises(ProviderError, match=message):
        client.embed("hello")


def test_from_policy_applies_overrides() -> None:
    policy = LLMPolicy(request_timeout_seconds=12.0, retry_attempts=4)

    client = EmbeddingClient.from_policy(lambda text: [1.0], policy, timeout_seconds=None)

    assert client.embed("x") == [1.0]
    assert client._timeout is None
    assert client._retry_attempts == 4


def test_text_generator_requires_string() -> None:
    assert TextGenerator(lambda prompt: prompt.upper()).generate("abc") == "ABC"

    with pytest.raises(ProviderError, match="expected str"):
        TextGenerator(lambda prompt: 42).generate("abc")


def test_source_fetcher_normalises_records() -> None:
    existing = Source(id="a", type=SourceType.PAPER, content="text")

    def fetch(ids: List[str]):
        return [existing, {"id": "b", "type": "podcast", "content": "episode"}]

    sources = SourceFetcher(fetch).fetch(["a", "b"])

    assert [source.id for source in sources] == ["a", "b"]
    assert sources[1].type is SourceType.PODCAST

    with pytest.raises(ProviderError, match="unsupported record"):
        SourceFetcher(lambda ids: ["raw string"]).fetch(["a"])


def test_hashing_embedder_is_deterministic_and_normalised() -> None:
    embedder = HashingEmbedder(dimensions=64)

    first = embedder("Remote work reshaped team trust")
    second = embedder("Remote work reshaped team trust")

    assert first == second
    assert len(first) == 64
    assert math.isclose(sum(value * value for value in first), 1.0)
    assert first[0] == 0.0


def test_hashing_embedder_handles_empty_text() -> None:
    vector = HashingEmbedder(dimensions=8)("   ")

    assert vector[0] == 1.0
    assert sum(vector) == 1.0


def test_hashing_embedder_rejects_tiny_dimensions() -> None:
    with pytest.raises(ValueError):
        HashingEmbedder(dimensions=1)


def test_label_prompt_renders_codes_and_keywords() -> None:
    codes = [Code(id="c1", source_id="s1", label="Trust", excerpts=["Trust eroded quickly after layoffs."])]
    prompt = LabelPrompt("{% for code in codes %}{{ code.label }}|{{ code.excerpt }};{% endfor %}{{ keywords | join(',') }}", max_excerpt_chars=5)

    assert prompt.render(codes, ["trust", "layoffs"]) == "Trust|Trust;trust,layoffs"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Label: Remote Trust", "Remote Trust"),
        ('"Shared Accountability."', "Shared Accountability"),
        ("\n\nWork Life Balance\nbecause it fits", "Work Life Balance"),
        ("", None),
        ("one two three four five six seven eight nine", None),
    ],
)
def test_clean_label(raw: str, expected: str | None) -> None:
    assert clean_label(raw) == expected
