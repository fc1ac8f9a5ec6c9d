import numpy as np

from symbol_isolation.engines.isolation.compositor import color_variance, composite, rewrite_alpha
from symbol_isolation.engines.isolation.schemas import BoundingBox, RasterImage


def _row(*pixels) -> RasterImage:
    return RasterImage(np.array([pixels], dtype=np.uint8))


def test_color_variance():
    rgb = np.array([[[10, 10, 10], [200, 40, 40], [0, 30, 90]]], dtype=np.uint8)
    assert color_variance(rgb).tolist() == [[0, 160, 90]]


def test_alpha_bands(cfg):
    image = _row(
        (255, 255, 255, 255),   # hard white
        (225, 225, 225, 255),   # near white luminance, neutral
        (210, 210, 210, 255),   # falloff band
        (190, 190, 190, 255),   # soften band
        (190, 190, 190, 200),   # soften band never raises alpha
        (200, 40, 40, 255),     # saturated: unchanged
        (225, 225, 225, 0),     # already transparent
    )

    alpha = rewrite_alpha(image, cfg)

    assert alpha.dtype == np.uint8
    # ((220 - 210) / 20) ** 1.5 * 50 = 17.68
    # max(180, 255 - (190 - 180) * 3) = 225; max(180, 200 - 30) = 180
    assert alpha.tolist() == [[0, 0, 18, 225, 180, 255, 0]]


def test_falloff_is_monotonic(cfg):
    levels = list(range(201, 221))
    image = _row(*[(v, v, v, 255) for v in levels])

    alpha = rewrite_alpha(image, cfg)[0].astype(int)

    assert all(a >= b for a, b in zip(alpha, alpha[1:]))
    assert alpha.max() <= cfg.falloff_max_alpha


def test_coloured_light_pixels_keep_alpha(cfg):
    # Luminance in the falloff band but variance above falloff_variance
    image = _row((250, 200, 180, 255))
    assert rewrite_alpha(image, cfg).tolist() == [[255]]


def test_composite_crops_and_clears_canvas(cfg, symbol_image):
    bbox = BoundingBox(71, 71, 185, 185)

    out = composite(symbol_image, bbox, cfg)

    assert out.size == (114, 114)
    alpha = out.alpha
    assert (alpha[25:89, 25:89] == 255).all()
    outside = np.ones_like(alpha, dtype=bool)
    outside[25:89, 25:89] = False
    assert not alpha[outside].any()
    # Colour channels are carried over untouched
    assert np.array_equal(out.rgb, symbol_image.rgb[71:185, 71:185])


def test_composite_does_not_modify_input(cfg, symbol_image):
    before = symbol_image.pixels.copy()
    composite(symbol_image, BoundingBox(71, 71, 185, 185), cfg)
    assert np.array_equal(symbol_image.pixels, before)
