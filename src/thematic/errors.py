"""Error hierarchy shared by the extraction pipeline.

Every error carries a ``kind`` so callers can pick the right remediation
(fix configuration, add sources, retry) without inspecting message text.
"""

from __future__ import annotations

import time


class ThematicError(Exception):
    """Base class for all errors raised by the extraction core."""

    kind = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.timestamp_ms = int(time.time() * 1000)


class ConfigurationError(ThematicError):
    """Configuration problems detected before any stage starts."""

    kind = "configuration"


class UnknownPurposeError(ConfigurationError):
    """Raised when a research purpose outside the enumeration is requested."""

    kind = "unknown_purpose"

    def __init__(self, purpose: object, valid: list[str]) -> None:
        super().__init__(
            f"Invalid research purpose '{purpose}'. Valid values: {', '.join(valid)}"
        )
        self.purpose = purpose


class InvalidConfigError(ConfigurationError):
    """Raised when a purpose bundle fails startup validation."""

    kind = "invalid_config"


class InvalidSourceTypeError(ThematicError):
    """Raised for source ``type`` tokens outside the supported enumeration."""

    kind = "invalid_source_type"


class NoValidSourcesError(ThematicError):
    """Raised when an extraction run has nothing to analyse."""

    kind = "no_valid_sources"


class ProviderError(ThematicError):
    """Failure returned by an external embedding, generation, or fetch call."""

    kind = "provider"

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class ProviderTimeoutError(ProviderError):
    """External call exceeded its configured timeout."""

    kind = "provider_timeout"

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class GeneratorUnavailableError(ThematicError):
    """A specialised candidate generator cannot run for the current input."""

    kind = "generator_unavailable"


class ExtractionCancelled(ThematicError):
    """Raised internally when the caller cancels a run."""

    kind = "cancelled"


__all__ = [
    "ThematicError",
    "ConfigurationError",
    "UnknownPurposeError",
    "InvalidConfigError",
    "InvalidSourceTypeError",
    "NoValidSourcesError",
    "ProviderError",
    "ProviderTimeoutError",
    "GeneratorUnavailableError",
    "ExtractionCancelled",
]
