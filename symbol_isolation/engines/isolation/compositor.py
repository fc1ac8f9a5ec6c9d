"""
Alpha Compositor

Crops to the padded box and rewrites alpha from luminance L and colour
variance V = max(|r-g|, |r-b|, |g-b|):

    all channels > white_threshold                 -> 0
    L > near_white_luminance, V < near_white_var   -> 0
    falloff band (200, 220], V < falloff_var       -> ((220 - L) / 20) ** 1.5 * 50
    soften band (180, 200], V < soften_var         -> max(180, a - (L - 180) * 3), never above a
    otherwise                                      -> unchanged

Protected edge pixels are forced opaque afterwards.
"""

from typing import Optional

import numpy as np

from symbol_isolation.engines.isolation.edges import luminance
from symbol_isolation.engines.isolation.masks import protected_edges
from symbol_isolation.engines.isolation.schemas import BoundingBox, IsolationConfig, Mask, RasterImage


def color_variance(rgb: np.ndarray) -> np.ndarray:
    px = rgb[..., :3].astype(np.int16)
    r, g, b = px[..., 0], px[..., 1], px[..., 2]
    return np.maximum(np.maximum(np.abs(r - g), np.abs(r - b)), np.abs(g - b))


def rewrite_alpha(image: RasterImage, cfg: IsolationConfig) -> np.ndarray:
    """New alpha plane (uint8) for image according to the luminance bands."""
    rgb = image.rgb
    alpha = image.alpha.astype(np.float32)
    lum = luminance(rgb)
    var = color_variance(rgb)

    hard_white = np.all(rgb > cfg.white_threshold, axis=-1)
    near_white = (lum > cfg.near_white_luminance) & (var < cfg.near_white_variance)
    falloff = (
        (lum > cfg.falloff_luminance) & (lum <= cfg.near_white_luminance) & (var < cfg.falloff_variance)
    )
    soften = (
        (lum > cfg.soften_luminance) & (lum <= cfg.falloff_luminance) & (var < cfg.soften_variance)
    )

    band_width = cfg.near_white_luminance - cfg.falloff_luminance
    falloff_alpha = np.clip(
        np.power(np.clip((cfg.near_white_luminance - lum) / band_width, 0.0, None), cfg.falloff_exponent)
        * cfg.falloff_max_alpha,
        0,
        cfg.falloff_max_alpha,
    )
    soften_alpha = np.minimum(
        alpha,
        np.maximum(cfg.soften_floor, alpha - (lum - cfg.soften_luminance) * cfg.soften_rate),
    )

    # np.select picks the first matching condition, mirroring rule order
    new_alpha = np.select(
        [hard_white | near_white, falloff, soften],
        [0.0, falloff_alpha, soften_alpha],
        default=alpha,
    )
    # Already transparent pixels stay transparent
    new_alpha = np.where(alpha == 0, 0.0, new_alpha)
    return np.rint(new_alpha).astype(np.uint8)


def composite(
    image: RasterImage,
    bbox: BoundingBox,
    cfg: IsolationConfig,
    edge_mask: Optional[Mask] = None,
) -> RasterImage:
    """
    Crop image to bbox and rewrite the alpha channel.

    Args:
        image: Full-size source image
        bbox: Padded crop box (half-open)
        cfg: Thresholds
        edge_mask: Full-size protected edge mask; computed when omitted
    """
    if edge_mask is None:
        edge_mask = protected_edges(image, cfg)

    cropped = image.crop(bbox)
    alpha = rewrite_alpha(cropped, cfg)
    alpha[edge_mask.crop(bbox).bits] = 255
    return cropped.with_alpha(alpha)
