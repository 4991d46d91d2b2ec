"""Initial coding stage."""

from .extractor import CodeDraft, CodeExtractor
from .processor import CodingProcessor, CodingResult, CodingTick

__all__ = ["CodeDraft", "CodeExtractor", "CodingProcessor", "CodingResult", "CodingTick"]
