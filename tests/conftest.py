import numpy as np
import pytest

from symbol_isolation.engines.isolation.schemas import IsolationConfig, RasterImage
from symbol_isolation.pipeline.orchestrator import SymbolIsolationPipeline

SYMBOL_COLOR = (200, 40, 40)


def square_on_white(size: int = 256, origin: int = 96, side: int = 64) -> RasterImage:
    """Opaque white canvas with a solid coloured square."""
    pixels = np.full((size, size, 4), 255, dtype=np.uint8)
    pixels[origin:origin + side, origin:origin + side, :3] = SYMBOL_COLOR
    return RasterImage(pixels)


def solid(width: int, height: int, rgba) -> RasterImage:
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :] = rgba
    return RasterImage(pixels)


@pytest.fixture
def cfg() -> IsolationConfig:
    return IsolationConfig()


@pytest.fixture
def pipeline() -> SymbolIsolationPipeline:
    return SymbolIsolationPipeline(config=IsolationConfig())


@pytest.fixture
def symbol_image() -> RasterImage:
    return square_on_white()


@pytest.fixture
def mid_gray_image() -> RasterImage:
    return solid(64, 64, (128, 128, 128, 255))


@pytest.fixture
def white_image() -> RasterImage:
    return solid(10, 10, (255, 255, 255, 255))


@pytest.fixture
def isolated_image() -> RasterImage:
    """Already isolated symbol: transparent surround, opaque centre."""
    pixels = np.zeros((80, 80, 4), dtype=np.uint8)
    pixels[20:60, 20:60] = SYMBOL_COLOR + (255,)
    return RasterImage(pixels)


@pytest.fixture
def make_solid():
    return solid
