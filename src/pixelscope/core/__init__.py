"""Core types: pixels, image buffers, signals and the event bus."""
