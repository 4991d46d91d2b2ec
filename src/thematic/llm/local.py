"""Deterministic offline embedder for the CLI and tests."""

from __future__ import annotations

import hashlib
from typing import List

import numpy as np

from ..utils.text import tokenize

DEFAULT_DIMENSIONS = 256


class HashingEmbedder:
    """Bag-of-words vectors built with the hashing trick.

    Texts sharing vocabulary get similar vectors and identical texts get
    identical ones, which is all the pipeline needs when no embedding backend
    is configured. Vectors are L2-normalised; text without usable tokens maps
    to a unit vector on a reserved dimension so it still embeds successfully.
    """

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS, *, min_token_length: int = 3) -> None:
        if dimensions < 2:
            raise ValueError("dimensions must be at least 2")
        self.dimensions = dimensions
        self._min_token_length = min_token_length

    def _bucket(self, token: str) -> int:
        digest = hashlib.md5(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "big") % (self.dimensions - 1) + 1

    def __call__(self, text: str) -> List[float]:
        vector = np.zeros(self.dimensions, dtype=float)
        for token in tokenize(text, min_length=self._min_token_length):
            vector[self._bucket(token)] += 1.0
        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            vector[0] = 1.0
            return vector.tolist()
        return (vector / norm).tolist()


__all__ = ["DEFAULT_DIMENSIONS", "HashingEmbedder"]
