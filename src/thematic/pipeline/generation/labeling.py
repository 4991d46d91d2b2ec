"""Optional LLM-assisted naming of candidate themes."""

from __future__ import annotations

from typing import Dict, Sequence, Tuple

from ...entities.core import Code
from ...errors import ProviderError
from ...llm.client import TextGenerator
from ...llm.prompts import LabelPrompt, clean_label
from ...utils.cancellation import CancellationToken
from ...utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


class ThemeLabeler:
    """Ask the text generator for a label and fall back on any failure."""

    def __init__(
        self,
        generator: TextGenerator | None,
        prompt: LabelPrompt,
        *,
        max_words: int = 8,
    ) -> None:
        self._generator = generator
        self._prompt = prompt
        self._max_words = max_words
        self.stats: Dict[str, int] = {"generated": 0, "fallback": 0, "failed": 0}

    @property
    def enabled(self) -> bool:
        return self._generator is not None

    def label(
        self,
        codes: Sequence[Code],
        keywords: Sequence[str],
        fallback: str,
        *,
        cancellation: CancellationToken | None = None,
    ) -> Tuple[str, bool]:
        """Return ``(label, generated)``."""

        if self._generator is None:
            self.stats["fallback"] += 1
            return fallback, False
        prompt = self._prompt.render(codes, keywords)
        try:
            raw = self._generator.generate(prompt, cancellation=cancellation)
        except ProviderError as exc:
            self.stats["failed"] += 1
            _LOGGER.warning("Theme labeling failed; using fallback label", fallback=fallback, error=str(exc))
            return fallback, False
        cleaned = clean_label(raw, max_words=self._max_words)
        if cleaned is None:
            self.stats["fallback"] += 1
            return fallback, False
        self.stats["generated"] += 1
        return cleaned, True


__all__ = ["ThemeLabeler"]
