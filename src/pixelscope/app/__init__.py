"""Application package for PixelScope: the viewer entrypoint."""

from . import viewer

__all__ = ["viewer"]
