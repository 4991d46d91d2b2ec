"""Vector and set similarity helpers shared by clustering, validation and merge."""

from __future__ import annotations

from functools import lru_cache
from itertools import combinations
from typing import AbstractSet, Iterable, Sequence

import jellyfish
import numpy as np

from .text import word_set

_JW_CACHE_SIZE = 4096


def keyword_set(keywords: Iterable[str]) -> frozenset[str]:
    """Lower-cased, stripped keyword set with empties removed."""

    return frozenset(value.strip().lower() for value in keywords if value and value.strip())


def jaccard(a: AbstractSet[str], b: AbstractSet[str]) -> float:
    """Jaccard index ``|A ∩ B| / |A ∪ B|``; two empty sets score 0."""

    if not a and not b:
        return 0.0
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def keyword_jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    return jaccard(keyword_set(a), keyword_set(b))


def label_similarity(label_a: str, label_b: str) -> float:
    """Jaccard over whitespace-tokenised, lower-cased label words."""

    return jaccard(word_set(label_a), word_set(label_b))


@lru_cache(maxsize=_JW_CACHE_SIZE)
def jaro_winkler_similarity(text1: str, text2: str) -> float:
    """Jaro-Winkler similarity of two lower-cased strings."""

    if not text1 or not text2:
        return 0.0
    return float(jellyfish.jaro_winkler_similarity(text1.lower(), text2.lower()))


def as_vector(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


def l2_norm(values: Sequence[float]) -> float:
    return float(np.linalg.norm(as_vector(values)))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; zero vectors and mismatched dimensions score 0."""

    vec_a = as_vector(a)
    vec_b = as_vector(b)
    if vec_a.size == 0 or vec_a.shape != vec_b.shape:
        return 0.0
    norm = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / norm)


def similarity_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Pairwise cosine similarity matrix for equally sized vectors."""

    if not vectors:
        return np.zeros((0, 0))
    matrix = np.vstack([as_vector(vector) for vector in vectors])
    norms = np.linalg.norm(matrix, axis=1)
    norms[norms == 0.0] = 1.0
    normalised = matrix / norms[:, None]
    return normalised @ normalised.T


def average_pairwise_similarity(vectors: Sequence[Sequence[float]]) -> float:
    """Mean cosine similarity over all unordered pairs.

    Fewer than two vectors are trivially coherent and score 1.0.
    """

    usable = [vector for vector in vectors if len(vector)]
    if len(usable) < 2:
        return 1.0
    matrix = similarity_matrix(usable)
    pairs = list(combinations(range(len(usable)), 2))
    return float(sum(matrix[i, j] for i, j in pairs) / len(pairs))


__all__ = [
    "keyword_set",
    "jaccard",
    "keyword_jaccard",
    "label_similarity",
    "jaro_winkler_similarity",
    "as_vector",
    "l2_norm",
    "cosine_similarity",
    "similarity_matrix",
    "average_pairwise_similarity",
]
