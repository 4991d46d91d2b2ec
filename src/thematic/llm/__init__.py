"""Guarded access to external embedding, generation, and fetch backends."""

from .client import EmbeddingClient, SourceFetcher, TextGenerator
from .local import HashingEmbedder
from .prompts import LabelPrompt, clean_label

__all__ = [
    "EmbeddingClient",
    "TextGenerator",
    "SourceFetcher",
    "HashingEmbedder",
    "LabelPrompt",
    "clean_label",
]
