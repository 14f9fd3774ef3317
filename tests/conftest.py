from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from PIL import Image

from pixelscope import config
from pixelscope.core.models import Pixel, PixelGrid
from pixelscope.platform.display.memory_backend import MemorySurface
from pixelscope.render.canvas_service import CanvasService
from pixelscope.ui.store import CanvasStore

RED = Pixel(255, 0, 0, 255)
GREEN = Pixel(0, 255, 0, 255)
BLUE = Pixel(0, 0, 255, 255)
YELLOW = Pixel(255, 255, 0, 255)


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv("PIXELSCOPE_HOME", str(home))
    monkeypatch.setattr(config, "_RUNTIME", None)
    monkeypatch.setattr(config, "_LISTENERS", [])
    return home


@pytest.fixture
def grid_2x2() -> PixelGrid:
    return [[RED, GREEN], [BLUE, YELLOW]]


@pytest.fixture
def canvas_store() -> CanvasStore:
    return CanvasStore()


@pytest.fixture
def service(canvas_store: CanvasStore) -> CanvasService:
    return CanvasService(canvas_store)


@pytest.fixture
def surface() -> MemorySurface:
    return MemorySurface(8, 8)


@pytest.fixture
def write_png(tmp_path: Path) -> Callable[[str, PixelGrid], Path]:
    def _write(name: str, grid: PixelGrid) -> Path:
        h = len(grid)
        w = len(grid[0])
        img = Image.new("RGBA", (w, h))
        img.putdata([tuple(p) for row in grid for p in row])
        path = tmp_path / name
        img.save(path, format="PNG")
        return path

    return _write
