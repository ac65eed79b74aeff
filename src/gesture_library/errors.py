"""Exception types raised by the gesture library."""

from __future__ import annotations


class GestureLibraryError(Exception):
    """Base class for all gesture library errors."""


class DecodeError(GestureLibraryError):
    """Binary input ended early or held a malformed value."""

    def __init__(self, field: str, message: str = ""):
        self.field = field
        super().__init__(message or f"Unexpected end of data while reading {field}")


class InvalidInputError(GestureLibraryError, ValueError):
    """A gesture's shape is incompatible with the requested policy."""


class PolicyMismatchError(GestureLibraryError):
    """Query and stored instances were extracted under different policies."""
