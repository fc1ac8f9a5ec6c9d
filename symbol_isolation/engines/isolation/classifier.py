"""
Background Classifier

Per-pixel "is this background?" rules (first match wins):
1. Transparent      a < alpha_floor
2. Near/pure white  avg > white_avg_threshold OR all channels >= pure_white_threshold
3. Dark             avg < dark_threshold
4. Grayscale-light  pairwise spread < gray_tol AND avg > light_threshold

The scalar predicate and the vectorised mask must agree pixel for pixel.
"""

import numpy as np

from symbol_isolation.core.logging import get_logger
from symbol_isolation.engines.isolation.schemas import IsolationConfig, Mask, RasterImage

logger = get_logger(__name__)


def is_background(r: int, g: int, b: int, a: int, cfg: IsolationConfig) -> bool:
    """Classify a single RGBA pixel."""
    if a < cfg.alpha_floor:
        return True

    avg = (r + g + b) / 3
    if avg > cfg.white_avg_threshold:
        return True
    if r >= cfg.pure_white_threshold and g >= cfg.pure_white_threshold and b >= cfg.pure_white_threshold:
        return True

    if avg < cfg.dark_threshold:
        return True

    is_gray = abs(r - g) < cfg.gray_tol and abs(g - b) < cfg.gray_tol and abs(r - b) < cfg.gray_tol
    return is_gray and avg > cfg.light_threshold


def classify_background(image: RasterImage, cfg: IsolationConfig) -> Mask:
    """Vectorised is_background over a whole image; True marks background."""
    px = image.pixels.astype(np.int16)
    r, g, b, a = px[:, :, 0], px[:, :, 1], px[:, :, 2], px[:, :, 3]
    avg = (r + g + b) / 3.0

    transparent = a < cfg.alpha_floor
    white = (avg > cfg.white_avg_threshold) | (
        (r >= cfg.pure_white_threshold) & (g >= cfg.pure_white_threshold) & (b >= cfg.pure_white_threshold)
    )
    dark = avg < cfg.dark_threshold
    gray_light = (
        (np.abs(r - g) < cfg.gray_tol)
        & (np.abs(g - b) < cfg.gray_tol)
        & (np.abs(r - b) < cfg.gray_tol)
        & (avg > cfg.light_threshold)
    )

    return Mask(transparent | white | dark | gray_light)


def hard_background(image: RasterImage, cfg: IsolationConfig) -> Mask:
    """Pixels that carry no foreground colour at all: transparent or pure white."""
    px = image.pixels
    transparent = px[:, :, 3] < cfg.alpha_floor
    pure_white = np.all(px[:, :, :3] >= cfg.pure_white_threshold, axis=-1)
    return Mask(transparent | pure_white)


def _border_samples(pixels: np.ndarray, stride: int) -> np.ndarray:
    """Top/bottom rows and left/right columns sampled every `stride` pixels."""
    height, width = pixels.shape[:2]
    xs = np.arange(0, width, stride)
    ys = np.arange(0, height, stride)
    return np.concatenate([
        pixels[0, xs],
        pixels[height - 1, xs],
        pixels[ys, 0],
        pixels[ys, width - 1],
    ])


def has_uniform_background(image: RasterImage, cfg: IsolationConfig) -> bool:
    """
    True when the border is predominantly opaque near-white, i.e. the image
    sits on a flat light canvas that background removal is meant for.

    Only the border is sampled: stride = max(border_stride_min,
    border_stride_ratio * min(width, height)).
    """
    stride = max(cfg.border_stride_min, int(cfg.border_stride_ratio * min(image.width, image.height)))
    samples = _border_samples(image.pixels, stride)

    near_white = np.all(samples[:, :3] > cfg.border_white_threshold, axis=-1) & (
        samples[:, 3] >= cfg.alpha_floor
    )
    white_ratio = float(near_white.mean())

    logger.debug(
        "border_sampled",
        samples=int(samples.shape[0]),
        stride=stride,
        white_ratio=round(white_ratio, 3),
    )
    return white_ratio > cfg.border_white_ratio
