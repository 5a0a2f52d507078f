"""Error taxonomy for the stamp pipeline.

Each error also derives from the closest builtin so callers that only catch
``ValueError`` / ``OverflowError`` / ``RuntimeError`` keep working.
"""

from __future__ import annotations

__all__ = [
    "StampError",
    "InvalidInputError",
    "CapacityExceededError",
    "EncodingFailureError",
]


class StampError(Exception):
    """Base class for every error raised by :mod:`stampready`."""


class InvalidInputError(StampError, ValueError):
    """Malformed or empty image, grid or settings.

    The caller must not attempt extraction after this is raised.
    """


class CapacityExceededError(StampError, OverflowError):
    """Triangle count does not fit the 32-bit STL count field."""


class EncodingFailureError(StampError, RuntimeError):
    """An external encoder (the vector tracer) failed to produce output."""
