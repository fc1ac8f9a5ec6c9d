import numpy as np
import pytest

from symbol_isolation.engines.isolation.classifier import (
    classify_background,
    hard_background,
    has_uniform_background,
    is_background,
)
from symbol_isolation.engines.isolation.schemas import RasterImage


@pytest.mark.parametrize("pixel", [
    (10, 200, 30, 0),        # transparent
    (10, 200, 30, 127),      # below alpha floor
    (255, 255, 255, 255),    # pure white
    (251, 251, 251, 255),    # average above 250
    (252, 253, 254, 255),    # all channels at pure white threshold
    (5, 10, 20, 255),        # dark
    (245, 243, 241, 255),    # light neutral gray
])
def test_background_pixels(cfg, pixel):
    assert is_background(*pixel, cfg)


@pytest.mark.parametrize("pixel", [
    (200, 40, 40, 255),      # saturated colour
    (128, 128, 128, 255),    # mid gray
    (245, 200, 241, 255),    # light but not neutral
    (200, 40, 40, 128),      # exactly at alpha floor
])
def test_foreground_pixels(cfg, pixel):
    assert not is_background(*pixel, cfg)


def test_vectorised_matches_scalar(cfg):
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(24, 24, 4), dtype=np.uint8)
    # Bias a third of the pixels towards the light/neutral region
    pixels[::3, :, :3] = rng.integers(235, 256, size=(8, 24, 1), dtype=np.uint8)
    image = RasterImage(pixels)

    mask = classify_background(image, cfg)

    for y in range(24):
        for x in range(24):
            r, g, b, a = (int(v) for v in pixels[y, x])
            assert mask.bits[y, x] == is_background(r, g, b, a, cfg), (x, y, pixels[y, x])


def test_hard_background_ignores_light_colour(cfg):
    pixels = np.array([[
        [255, 255, 255, 255],
        [240, 240, 240, 255],
        [200, 40, 40, 10],
        [200, 40, 40, 255],
    ]], dtype=np.uint8)

    mask = hard_background(RasterImage(pixels), cfg)

    assert mask.bits.tolist() == [[True, False, True, False]]


def test_uniform_background_on_white_canvas(cfg, symbol_image):
    assert has_uniform_background(symbol_image, cfg)


def test_uniform_background_on_near_white_border(cfg, make_solid):
    image = make_solid(100, 100, (245, 245, 245, 255))
    assert has_uniform_background(image, cfg)


def test_mid_gray_is_not_uniform_background(cfg, mid_gray_image):
    assert not has_uniform_background(mid_gray_image, cfg)


def test_transparent_border_is_not_uniform_background(cfg, isolated_image):
    assert not has_uniform_background(isolated_image, cfg)


def test_border_ratio_threshold(cfg):
    # Left and right columns dark, top and bottom rows white: half the samples are white
    pixels = np.full((100, 100, 4), 255, dtype=np.uint8)
    pixels[:, 0, :3] = 0
    pixels[:, -1, :3] = 0

    assert not has_uniform_background(RasterImage(pixels), cfg)
    assert has_uniform_background(RasterImage(pixels), cfg.merged({"border_white_ratio": 0.3}))
