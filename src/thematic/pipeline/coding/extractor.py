"""Frequency-based initial code extraction from a single source."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from ...config.policies import CodingPolicy
from ...entities.core import Source
from ...utils.similarity import jaro_winkler_similarity
from ...utils.text import split_sentences, title_case, tokenize, truncate

# Labels this similar are inflections of one another ("trust" / "trusts").
_NEAR_DUPLICATE_LABEL = 0.95


@dataclass(slots=True)
class CodeDraft:
    """Code before it is embedded."""

    source_id: str
    label: str
    description: str
    excerpts: List[str] = field(default_factory=list)


def _ranked(counts: Counter, order: Dict[str, int], limit: int) -> List[str]:
    return sorted(counts, key=lambda term: (-counts[term], order[term]))[:limit]


class CodeExtractor:
    """Extract bigram and keyword codes with supporting excerpts.

    Bigrams are counted within sentences only so a phrase never spans a
    sentence boundary. Codes are the top bigrams followed by the leading
    keywords; a code without a sentence that literally contains its label is
    dropped.
    """

    def __init__(self, policy: CodingPolicy | None = None) -> None:
        self._policy = policy or CodingPolicy()

    def extract(self, source: Source) -> List[CodeDraft]:
        policy = self._policy
        sentences = split_sentences(source.content, min_length=policy.min_sentence_length)
        if not sentences:
            return []

        keyword_counts: Counter[str] = Counter()
        bigram_counts: Counter[str] = Counter()
        keyword_order: Dict[str, int] = {}
        bigram_order: Dict[str, int] = {}
        for sentence in sentences:
            tokens = tokenize(sentence, min_length=policy.min_token_length)
            for token in tokens:
                keyword_counts[token] += 1
                keyword_order.setdefault(token, len(keyword_order))
            for left, right in zip(tokens, tokens[1:]):
                bigram = f"{left} {right}"
                bigram_counts[bigram] += 1
                bigram_order.setdefault(bigram, len(bigram_order))

        keywords = _ranked(keyword_counts, keyword_order, policy.top_keywords)
        bigrams = _ranked(bigram_counts, bigram_order, policy.top_bigrams)
        candidates = bigrams + keywords[: policy.keyword_codes]

        lowered_sentences = [sentence.lower() for sentence in sentences]
        selected: List[str] = []
        drafts: List[CodeDraft] = []
        for phrase in candidates:
            if any(jaro_winkler_similarity(phrase, prior) >= _NEAR_DUPLICATE_LABEL for prior in selected):
                continue
            excerpts = [
                truncate(sentence, policy.max_excerpt_length)
                for sentence, lowered in zip(sentences, lowered_sentences)
                if phrase in lowered
            ][: policy.max_excerpts_per_code]
            if not excerpts:
                continue
            selected.append(phrase)
            label = title_case(phrase)
            title = source.title[:50] or source.id
            drafts.append(
                CodeDraft(
                    source_id=source.id,
                    label=label,
                    description=f'Pattern identified through frequency analysis: "{label}" in "{title}..."',
                    excerpts=excerpts,
                )
            )
        return drafts


__all__ = ["CodeDraft", "CodeExtractor"]
