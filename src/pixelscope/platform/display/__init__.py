"""Drawing surface backends (Pillow in-memory, pygame)."""

from .memory_backend import MemorySurface

__all__ = ["MemorySurface"]
