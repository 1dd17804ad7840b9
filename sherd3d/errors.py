"""Exception types raised by the reconstruction core."""

from __future__ import annotations


class Sherd3DError(Exception):
    """Base class for all reconstruction errors."""


class InputInvalidError(Sherd3DError, ValueError):
    """Raised for malformed rasters, depth fields or point arrays."""


class NotInitializedError(Sherd3DError, RuntimeError):
    """Raised when a stateful service is used before its setup step."""
