"""Top-level package for the thematic extraction system."""

from __future__ import annotations

from importlib.metadata import version

try:
    __version__ = version("thematic-extraction")
except Exception:  # pragma: no cover - fallback during local development
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import (
    CandidateTheme,
    Code,
    ExtractionResponse,
    ProgressEvent,
    ResearchPurpose,
    Source,
    SourceType,
    UnifiedTheme,
)
from .orchestration import ExtractionOrchestrator, ExtractionRequest, run_extraction

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "Source",
    "SourceType",
    "ResearchPurpose",
    "Code",
    "CandidateTheme",
    "UnifiedTheme",
    "ProgressEvent",
    "ExtractionResponse",
    "ExtractionOrchestrator",
    "ExtractionRequest",
    "run_extraction",
]
