"""Tokenisation helpers shared by coding, keyword ranking, and synthesis."""

from __future__ import annotations

import html
import re
from collections import Counter
from functools import lru_cache
from typing import Iterable, List, Sequence, Tuple

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_NON_WORD = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")
_TAG = re.compile(r"<[^>]+>")
_PURE_NUMBER = re.compile(r"^\d+$")
_COMPLEX_ABBREV = re.compile(r"^[a-z]+-\d+-[a-z]+$", re.IGNORECASE)
_HAS_ALNUM = re.compile(r"[a-z0-9]", re.IGNORECASE)

STOP_WORDS = frozenset(
    """
    the a an and or but nor yet so in on at to for of with by from as into through
    during before after above below between under about against among around behind
    i you he she it we they them their this that these those my your his her its our
    is am are was were been being be have has had having do does did doing will would
    should could may might must can also very just only even such more most some any
    all both each few many much other another same own which who whom whose what when
    where why how not no none nothing neither than too now then once again further
    here there within while upon
    """.split()
)

RESEARCH_TERMS = frozenset(
    {
        "covid-19",
        "covid19",
        "sars-cov-2",
        "long-covid",
        "h1n1",
        "h5n1",
        "hiv-1",
        "hiv-2",
        "p-value",
        "t-test",
        "chi-square",
        "meta-analysis",
        "crispr",
        "cas9",
        "gpt-4",
        "wi-fi",
        "type-1",
        "type-2",
    }
)


def is_noise_word(word: str) -> bool:
    """Return ``True`` for numbers, identifiers, and extraction artefacts."""

    if not word:
        return True
    if word in RESEARCH_TERMS:
        return False
    if _PURE_NUMBER.match(word):
        return True
    digits = sum(1 for char in word if char.isdigit())
    if digits / len(word) > 0.5:
        return True
    if _COMPLEX_ABBREV.match(word):
        return True
    if word.startswith("&"):
        return True
    if len(word) == 1:
        return True
    return not _HAS_ALNUM.search(word)


def split_sentences(text: str, *, min_length: int = 20) -> List[str]:
    """Split ``text`` on terminal punctuation keeping sentences longer than ``min_length``."""

    sentences = (segment.strip() for segment in _SENTENCE_SPLIT.split(text))
    return [sentence for sentence in sentences if len(sentence) > min_length]


@lru_cache(maxsize=4096)
def _tokenize_cached(text: str, min_length: int) -> Tuple[str, ...]:
    lowered = _NON_WORD.sub(" ", text.lower())
    return tuple(
        word
        for word in _WHITESPACE.split(lowered)
        if len(word) >= min_length and word not in STOP_WORDS and not is_noise_word(word)
    )


def tokenize(text: str, *, min_length: int = 4) -> List[str]:
    """Lowercase content tokens with stop words and noise removed."""

    return list(_tokenize_cached(text, min_length))


def word_set(text: str) -> frozenset[str]:
    """Lower-cased whitespace tokens used for label comparison."""

    return frozenset(token for token in _WHITESPACE.split(text.lower().strip()) if token)


def rank_terms(texts: Iterable[str], *, limit: int, min_length: int = 4) -> List[str]:
    """Return the ``limit`` most frequent tokens across ``texts``.

    Ties are broken by first appearance so the ranking is deterministic.
    """

    counts: Counter[str] = Counter()
    first_seen: dict[str, int] = {}
    for text in texts:
        for token in tokenize(text, min_length=min_length):
            counts[token] += 1
            first_seen.setdefault(token, len(first_seen))
    ordered = sorted(counts, key=lambda token: (-counts[token], first_seen[token]))
    return ordered[:limit]


def title_case(label: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in label.split())


def sanitize_title(title: str | None, *, max_length: int = 60) -> str:
    """Strip markup, collapse whitespace, and truncate a title for display."""

    if not title:
        return ""
    cleaned = html.unescape(_TAG.sub(" ", title))
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[: max_length - 3].rstrip() + "..."


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def dedupe_preserving_order(values: Sequence[str]) -> List[str]:
    """Case-insensitive de-duplication keeping the first spelling seen."""

    seen: set[str] = set()
    result: List[str] = []
    for value in values:
        key = value.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(value.strip())
    return result


__all__ = [
    "STOP_WORDS",
    "RESEARCH_TERMS",
    "is_noise_word",
    "split_sentences",
    "tokenize",
    "word_set",
    "rank_terms",
    "title_case",
    "sanitize_title",
    "truncate",
    "dedupe_preserving_order",
]
