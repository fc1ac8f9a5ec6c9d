import numpy as np

from symbol_isolation.engines.isolation.cleanup import (
    attenuate_edge_luminance,
    denoise,
    remove_halos,
    run_cleanup,
    sharpen,
)
from symbol_isolation.engines.isolation.schemas import RasterImage


def _opaque_block(size: int = 21, inner: slice = slice(7, 14)) -> RasterImage:
    """Transparent tile with an opaque red block in the middle."""
    pixels = np.zeros((size, size, 4), dtype=np.uint8)
    pixels[inner, inner] = (200, 40, 40, 255)
    return RasterImage(pixels)


def _soft_block() -> RasterImage:
    """Opaque red block inside a one pixel ring of alpha 100."""
    pixels = np.zeros((21, 21, 4), dtype=np.uint8)
    pixels[6:15, 6:15] = (200, 40, 40, 100)
    pixels[7:14, 7:14, 3] = 255
    return RasterImage(pixels)


def test_denoise_keeps_uniform_image(make_solid):
    image = make_solid(9, 9, (120, 60, 30, 255))
    assert denoise(image).same_pixels(image)


def test_denoise_leaves_hard_alpha_alone():
    image = _opaque_block()
    assert denoise(image).same_pixels(image)


def test_denoise_smooths_partial_alpha_without_bleeding():
    image = _soft_block()

    out = denoise(image)

    # 0.787 * 100 + 0.1065 * 255 from the opaque side, nothing from the transparent side
    ring = out.pixels[10, 6]
    assert ring[3] == 106
    assert tuple(ring[:3]) == (200, 40, 40)
    # Settled pixels are untouched
    assert out.pixels[10, 7, 3] == 255
    assert out.pixels[10, 5].tolist() == [0, 0, 0, 0]
    assert out.pixels[0, 0].tolist() == [0, 0, 0, 0]


def test_denoise_zero_sigma_is_identity():
    image = _opaque_block()
    assert denoise(image, sigma=0) is image


def test_remove_halos():
    image = RasterImage(np.array([[
        [200, 40, 40, 30],      # faint
        [230, 230, 230, 100],   # light fringe
        [200, 40, 40, 100],     # visible colour
        [0, 0, 0, 0],
        [200, 40, 40, 60],      # at the cutoff
    ]], dtype=np.uint8))

    out = remove_halos(image)

    assert out.alpha.tolist() == [[0, 0, 100, 0, 60]]


def test_attenuate_edge_luminance(cfg):
    image = RasterImage(np.array([[
        [231, 230, 230, 100],   # L = 230.3: floor(100 - 30.3)
        [230, 230, 230, 200],   # opaque enough: untouched
        [230, 230, 170, 100],   # one channel below 180: untouched
    ]], dtype=np.uint8))

    out = attenuate_edge_luminance(image, cfg)

    assert out.alpha.tolist() == [[69, 200, 100]]


def test_sharpen_keeps_transparent_pixels_transparent():
    image = _soft_block()
    transparent = image.alpha == 0

    out = sharpen(image)

    assert (out.alpha[transparent] == 0).all()
    assert np.array_equal(out.rgb, image.rgb)


def test_sharpen_is_deterministic():
    image = _soft_block()
    assert sharpen(image).same_pixels(sharpen(image))


def test_sharpen_increases_edge_contrast():
    image = _soft_block()

    out = sharpen(image, amount=0.3)

    # Ring sits below its blurred neighbourhood and is pushed further down
    assert out.alpha[10, 6] < image.alpha[10, 6]
    assert out.alpha[10, 7] == 255
    assert out.alpha[10, 10] == 255


def test_run_cleanup_respects_sharpen_toggle(cfg):
    image = _opaque_block()

    with_sharpen = run_cleanup(image, cfg)
    without_sharpen = run_cleanup(image, cfg.merged({"sharpen_enabled": False}))

    assert without_sharpen.same_pixels(
        attenuate_edge_luminance(remove_halos(denoise(image)), cfg)
    )
    assert with_sharpen.same_pixels(sharpen(without_sharpen, cfg.sharpen_amount, cfg.denoise_sigma))


def test_sharpen_leaves_hard_alpha_alone():
    image = _opaque_block()
    assert sharpen(image).same_pixels(image)


def test_run_cleanup_settles_after_one_pass(cfg):
    once = run_cleanup(_opaque_block(), cfg)
    twice = run_cleanup(once, cfg)

    assert np.abs(twice.alpha.astype(int) - once.alpha.astype(int)).max() <= 1
    assert np.array_equal(twice.rgb, once.rgb)
