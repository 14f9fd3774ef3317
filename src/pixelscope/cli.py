"""Command-line interface for PixelScope.

Argument parsing lives in :mod:`pixelscope.app.viewer` so the console
script, ``python -m pixelscope`` and the app module share one parser.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from pixelscope import __version__
from pixelscope.app import viewer


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return viewer.parse_args(argv)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> None:
    """Synchronous entrypoint for the PixelScope CLI."""
    args = parse_args(argv)

    if getattr(args, "version", False):
        print(f"PixelScope {__version__}")
        return

    configure_logging(args.log_level)
    if not args.image:
        raise SystemExit("pixelscope: an IMAGE path is required")

    try:
        asyncio.run(run_async(argv))
    except KeyboardInterrupt:
        # Allow graceful cancellation via Ctrl+C
        pass


async def run_async(argv: list[str] | None = None) -> None:
    """Async entrypoint for programmatic usage/testing.

    Tests can ``await run_async(...)`` without starting a nested loop.
    """
    args = parse_args(argv)
    if getattr(args, "version", False):
        print(f"PixelScope {__version__}")
        return

    if getattr(args, "headless", False):
        await viewer._main_headless_async(args)
    else:
        await viewer.main_async(args)


if __name__ == "__main__":
    main()
