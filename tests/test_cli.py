from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from pixelscope import __version__, cli
from pixelscope.app import viewer
from pixelscope.core.models import Pixel, PixelGrid
from pixelscope.settings.store import SettingsStore

GRID = [
    [Pixel(255, 0, 0, 255), Pixel(0, 255, 0, 255), Pixel(0, 0, 255, 255)],
    [Pixel(10, 20, 30, 255), Pixel(40, 50, 60, 128), Pixel(0, 0, 0, 0)],
]


def test_parse_args() -> None:
    args = cli.parse_args(
        ["pic.png", "--headless", "--pick", "3,4", "--alpha", "unit", "--zoom", "2"]
    )
    assert args.image == "pic.png"
    assert args.headless is True
    assert args.pick == (3, 4)
    assert args.alpha == "unit"
    assert args.zoom == 2.0
    assert args.smoothing is None


def test_parse_args_rejects_bad_point() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["pic.png", "--pick", "nope"])


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["--version"])
    assert capsys.readouterr().out.strip() == f"PixelScope {__version__}"


def test_missing_image_exits() -> None:
    with pytest.raises(SystemExit):
        cli.main(["--headless"])


@pytest.mark.asyncio
async def test_headless_pick_prints_colour(
    write_png: Callable[[str, PixelGrid], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    path = write_png("pic.png", GRID)
    await cli.run_async(["--headless", str(path), "--pick", "1,1"])
    assert capsys.readouterr().out.strip() == "rgba(40, 50, 60, 128)"


@pytest.mark.asyncio
async def test_headless_pick_unit_alpha_and_off_grid(
    write_png: Callable[[str, PixelGrid], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    path = write_png("pic.png", GRID)
    await cli.run_async(["--headless", str(path), "--pick", "0,0", "--alpha", "unit"])
    assert capsys.readouterr().out.strip() == "rgba(255, 0, 0, 1)"
    await cli.run_async(["--headless", str(path), "--pick", "9,9"])
    assert capsys.readouterr().out.strip() == "none"


@pytest.mark.asyncio
async def test_headless_zoom_and_export(
    write_png: Callable[[str, PixelGrid], Path], tmp_path: Path
) -> None:
    path = write_png("pic.png", GRID)
    out = tmp_path / "out" / "raw.png"
    args = viewer.parse_args(
        [str(path), "--headless", "--zoom", "2", "--pick", "2,2", "--export", str(out)]
    )
    pixel = await viewer._main_headless_async(args)
    assert pixel == GRID[1][1]
    with Image.open(out) as img:
        assert img.size == (6, 4)


@pytest.mark.asyncio
async def test_headless_with_kmeans(
    write_png: Callable[[str, PixelGrid], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    path = write_png("pic.png", GRID)
    labelled = write_png("labels.png", [[Pixel(9, 9, 9, 255)] * 3] * 2)
    await cli.run_async(
        ["--headless", str(path), "--kmeans", str(labelled), "--pick", "2,0"]
    )
    assert capsys.readouterr().out.strip() == "rgba(0, 0, 255, 255)"


def test_load_image_file_converts_to_rgba(tmp_path: Path) -> None:
    p = tmp_path / "rgb.png"
    Image.new("RGB", (2, 1), (1, 2, 3)).save(p)
    img = viewer.load_image_file(p)
    assert (img.width, img.height) == (2, 1)
    assert img.data == bytearray([1, 2, 3, 255] * 2)


@pytest.mark.asyncio
async def test_save_settings_persists_overrides(
    write_png: Callable[[str, PixelGrid], Path],
    capsys: pytest.CaptureFixture[str],
) -> None:
    path = write_png("pic.png", GRID)
    await cli.run_async(
        [
            "--headless",
            str(path),
            "--alpha",
            "unit",
            "--multiplier",
            "2",
            "--save-settings",
        ]
    )
    stored = SettingsStore.load()
    assert stored.alpha_format == "unit"
    assert stored.default_multiplier == 2.0
    assert stored.smoothing is False

    # the next run picks up the stored alpha format without the flag
    await cli.run_async(["--headless", str(path), "--pick", "0,0"])
    assert capsys.readouterr().out.strip() == "rgba(255, 0, 0, 1)"


def test_save_cli_settings_without_overrides() -> None:
    args = viewer.parse_args(["pic.png", "--save-settings"])
    assert viewer.save_cli_settings(args) is None
    assert not SettingsStore.settings_path().exists()
