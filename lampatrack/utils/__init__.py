"""Utility helpers package."""

from lampatrack.utils.exceptions import (
    ConfigurationError,
    LampaTrackException,
    UnknownStatusError,
    ValidationError,
)

__all__ = ["ConfigurationError", "LampaTrackException", "UnknownStatusError", "ValidationError"]
