"""Configuration layer for the thematic extraction service."""

from .policies import Policies, PurposeConfig, load_policies
from .purposes import PurposeResolver, resolve, validate_purpose_configs
from .settings import Settings, get_settings

__all__ = [
    "Policies",
    "PurposeConfig",
    "PurposeResolver",
    "Settings",
    "get_settings",
    "load_policies",
    "resolve",
    "validate_purpose_configs",
]
