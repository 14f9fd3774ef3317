"""UI package: shared store and the display controller."""
