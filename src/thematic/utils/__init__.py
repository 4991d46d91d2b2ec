"""Utility helpers shared across thematic modules."""

from .helpers import ensure_directory, serialize_json, stable_id
from .logging import configure_logging, get_logger, log_timing, logging_context
from .similarity import (
    average_pairwise_similarity,
    cosine_similarity,
    jaccard,
    jaro_winkler_similarity,
    keyword_jaccard,
    keyword_set,
    l2_norm,
    label_similarity,
    similarity_matrix,
)
from .text import (
    dedupe_preserving_order,
    rank_terms,
    sanitize_title,
    split_sentences,
    title_case,
    tokenize,
    truncate,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "log_timing",
    "logging_context",
    "ensure_directory",
    "serialize_json",
    "stable_id",
    "average_pairwise_similarity",
    "cosine_similarity",
    "jaccard",
    "jaro_winkler_similarity",
    "keyword_jaccard",
    "keyword_set",
    "l2_norm",
    "label_similarity",
    "similarity_matrix",
    "dedupe_preserving_order",
    "rank_terms",
    "sanitize_title",
    "split_sentences",
    "title_case",
    "tokenize",
    "truncate",
]
