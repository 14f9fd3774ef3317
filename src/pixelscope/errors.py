"""Exception types raised by PixelScope."""

from __future__ import annotations


class PixelScopeError(Exception):
    """Base class for all PixelScope errors."""


class NoSurfaceError(PixelScopeError):
    """Raised when an operation needs a bound surface and none is bound."""

    def __init__(self, message: str = "No surface bound") -> None:
        super().__init__(message)


class DecodeFailedError(PixelScopeError):
    """Raised when an encoded image cannot be decoded."""


class HitTestingActiveError(PixelScopeError):
    """Raised when hit testing is started on a surface that is already listening."""


class ReentrantSurfaceError(PixelScopeError):
    """Raised when an identity-transform scope is re-entered on the same surface."""
