"""Console entrypoint for the pixelscope application.

This module delegates to :mod:`pixelscope.cli` so that running
``python -m pixelscope`` or the installed ``pixelscope`` console script
executes the same application code.
"""

from __future__ import annotations

from pixelscope.cli import main as cli_main


def main() -> None:
    """Application entrypoint (delegates to :func:`pixelscope.cli.main`)."""
    cli_main()


if __name__ == "__main__":
    main()
