"""Command-line interface for the thematic extraction service."""

from .main import app

__all__ = ["app"]
