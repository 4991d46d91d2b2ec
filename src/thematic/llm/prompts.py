"""Prompt rendering for theme labeling."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Sequence

from jinja2 import Environment, StrictUndefined

from ..entities.core import Code

_QUOTES = "\"'`“”‘’"
_PREFIX = re.compile(r"^(theme|label)\s*[:\-]\s*", re.IGNORECASE)


class LabelPrompt:
    """Render the theme-labeling prompt from a jinja2 template string."""

    def __init__(self, template: str, *, max_codes: int = 8, max_excerpt_chars: int = 160) -> None:
        self._env = Environment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self._template = self._env.from_string(template)
        self._max_codes = max_codes
        self._max_excerpt_chars = max_excerpt_chars

    def render(self, codes: Sequence[Code], keywords: Sequence[str]) -> str:
        payload: List[Dict[str, Any]] = []
        for code in list(codes)[: self._max_codes]:
            excerpt = code.excerpts[0] if code.excerpts else ""
            payload.append({"label": code.label, "excerpt": excerpt[: self._max_excerpt_chars]})
        return self._template.render(codes=payload, keywords=list(keywords))


def clean_label(raw: str, *, max_words: int = 8) -> str | None:
    """Normalise a generated label; ``None`` when nothing usable remains."""

    lines = [line.strip() for line in raw.strip().splitlines() if line.strip()]
    if not lines:
        return None
    label = _PREFIX.sub("", lines[0]).strip().rstrip(".").strip(_QUOTES).strip().rstrip(".")
    words = label.split()
    if not words or len(words) > max_words:
        return None
    return " ".join(words)


__all__ = ["LabelPrompt", "clean_label"]
