"""Theme deduplication, cross-type merging and provenance."""

from .graph import EdgeMetadata, SimilarityGraph, UnionFind
from .merger import SourceTypeGroup, ThemeDeduplicator, merge_from_sources, merge_themes
from .provenance import build_provenance, citation_chain, combine_constituents, normalize_influence, render_citation

__all__ = [
    "EdgeMetadata",
    "SimilarityGraph",
    "SourceTypeGroup",
    "ThemeDeduplicator",
    "UnionFind",
    "build_provenance",
    "citation_chain",
    "combine_constituents",
    "merge_from_sources",
    "merge_themes",
    "normalize_influence",
    "render_citation",
]
