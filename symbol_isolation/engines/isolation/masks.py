"""
Foreground Mask Builder & Bounding Box Extractor
"""

import numpy as np

from symbol_isolation.core.exceptions import NoForegroundDetectedError
from symbol_isolation.engines.isolation.classifier import classify_background, hard_background
from symbol_isolation.engines.isolation.edges import detect_edges
from symbol_isolation.engines.isolation.schemas import BoundingBox, IsolationConfig, Mask, RasterImage


def protected_edges(image: RasterImage, cfg: IsolationConfig) -> Mask:
    """
    Sobel edges minus hard background (transparent or pure white pixels).
    Sobel marks both sides of a step; the white side is never foreground.
    """
    return detect_edges(image, cfg.edge_threshold) & ~hard_background(image, cfg)


def build_mask(image: RasterImage, cfg: IsolationConfig, edge_mask: Mask = None) -> Mask:
    """Foreground = NOT background OR protected edge."""
    if edge_mask is None:
        edge_mask = protected_edges(image, cfg)
    return ~classify_background(image, cfg) | edge_mask


def extract_bbox(mask: Mask) -> BoundingBox:
    """
    Tight half-open box around every set bit.

    Raises:
        NoForegroundDetectedError: if no bit is set
    """
    rows = np.flatnonzero(mask.bits.any(axis=1))
    if rows.size == 0:
        raise NoForegroundDetectedError(
            details={"width": mask.width, "height": mask.height}
        )
    cols = np.flatnonzero(mask.bits.any(axis=0))

    return BoundingBox(
        min_x=int(cols[0]),
        min_y=int(rows[0]),
        max_x=int(cols[-1]) + 1,
        max_y=int(rows[-1]) + 1,
    )


def crop_padding(width: int, height: int, cfg: IsolationConfig) -> int:
    """max(crop_padding_min, floor(crop_padding_ratio * min(width, height)))"""
    return max(cfg.crop_padding_min, int(cfg.crop_padding_ratio * min(width, height)))


def pad_bbox(bbox: BoundingBox, width: int, height: int, cfg: IsolationConfig) -> BoundingBox:
    return bbox.pad(crop_padding(width, height, cfg), width, height)
