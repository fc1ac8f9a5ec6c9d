"""
Cleanup Passes

Applied in this order over the compositor's output, each returning a new image:
1. denoise                   - 3x3 Gaussian blur of partial-alpha pixels, premultiplied
2. remove_halos              - drop faint alpha and light fringe pixels
3. attenuate_edge_luminance  - fade bright semi-transparent edge pixels
4. sharpen                   - unsharp mask on alpha only (optional)

Later passes assume halos were already zeroed, so the order is fixed.
"""

import cv2
import numpy as np

from symbol_isolation.core.logging import with_logging
from symbol_isolation.engines.isolation.edges import luminance
from symbol_isolation.engines.isolation.schemas import IsolationConfig, RasterImage


def _gaussian(plane: np.ndarray, sigma: float) -> np.ndarray:
    return cv2.GaussianBlur(np.ascontiguousarray(plane), (3, 3), sigmaX=sigma, sigmaY=sigma, borderType=cv2.BORDER_REPLICATE)


@with_logging("denoise")
def denoise(image: RasterImage, sigma: float = 0.5) -> RasterImage:
    """
    Small blur against speckle from the per-pixel alpha decisions.

    Only partially transparent pixels are smoothed; alpha 0 and 255 are
    settled decisions and stay as they are, so a hard edge survives any
    number of reruns. Colour is blurred premultiplied so transparent
    neighbours do not bleed their (meaningless) RGB into edges.
    """
    if sigma <= 0:
        return image

    partial = (image.alpha > 0) & (image.alpha < 255)
    if not partial.any():
        return image

    px = image.pixels.astype(np.float32)
    alpha = px[:, :, 3]
    premultiplied = px[:, :, :3] * (alpha[:, :, None] / 255.0)

    blurred_alpha = _gaussian(alpha, sigma)
    blurred_rgb = _gaussian(premultiplied, sigma)

    out_alpha = np.clip(np.rint(blurred_alpha), 0, 255)
    visible = out_alpha > 0
    safe_alpha = np.where(visible, blurred_alpha, 1.0)
    out_rgb = np.where(
        visible[:, :, None],
        blurred_rgb * (255.0 / safe_alpha[:, :, None]),
        px[:, :, :3],
    )

    out = image.pixels.copy()
    out[partial, :3] = np.clip(np.rint(out_rgb[partial]), 0, 255).astype(np.uint8)
    out[partial, 3] = out_alpha[partial].astype(np.uint8)
    return RasterImage(out)


@with_logging("halo_removal")
def remove_halos(image: RasterImage, alpha_cutoff: int = 60, white_threshold: int = 220) -> RasterImage:
    """Zero alpha for 0 < a < alpha_cutoff and for visible pixels with all channels > white_threshold."""
    alpha = image.alpha
    faint = (alpha > 0) & (alpha < alpha_cutoff)
    fringe = np.all(image.rgb > white_threshold, axis=-1) & (alpha > 0)
    return image.with_alpha(np.where(faint | fringe, 0, alpha).astype(np.uint8))


@with_logging("edge_attenuation")
def attenuate_edge_luminance(image: RasterImage, cfg: IsolationConfig) -> RasterImage:
    """For semi-transparent light pixels, reduce alpha by (L - attenuation_luminance)."""
    alpha = image.alpha.astype(np.float32)
    lum = luminance(image.rgb)

    target = (
        (alpha >= cfg.halo_alpha_cutoff)
        & (alpha < cfg.attenuation_alpha_max)
        & np.all(image.rgb > cfg.attenuation_channel_min, axis=-1)
        & (lum > cfg.attenuation_luminance)
    )
    reduced = np.maximum(0.0, alpha - (lum - cfg.attenuation_luminance))
    new_alpha = np.where(target, np.floor(reduced), alpha)
    return image.with_alpha(new_alpha.astype(np.uint8))


@with_logging("sharpen")
def sharpen(image: RasterImage, amount: float = 0.3, sigma: float = 0.5) -> RasterImage:
    """
    Unsharp mask on the alpha channel: a + amount * (a - blur(a)).
    RGB is untouched and fully transparent pixels stay transparent.
    """
    if amount <= 0:
        return image

    alpha = image.alpha.astype(np.float32)
    detail = alpha - _gaussian(alpha, max(sigma, 0.5))
    sharpened = np.clip(np.rint(alpha + amount * detail), 0, 255)
    sharpened = np.where(alpha == 0, 0.0, sharpened)
    return image.with_alpha(sharpened.astype(np.uint8))


def run_cleanup(image: RasterImage, cfg: IsolationConfig) -> RasterImage:
    """All cleanup passes in order."""
    image = denoise(image, cfg.denoise_sigma)
    image = remove_halos(image, cfg.halo_alpha_cutoff, cfg.halo_white_threshold)
    image = attenuate_edge_luminance(image, cfg)
    if cfg.sharpen_enabled:
        image = sharpen(image, cfg.sharpen_amount, cfg.denoise_sigma)
    return image
