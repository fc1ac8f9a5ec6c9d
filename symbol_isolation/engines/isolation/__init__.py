"""
Symbol Isolation Engine

Pure stages over pixel buffers:
classifier -> edges -> masks (mask + bbox) -> compositor -> cleanup
"""

from symbol_isolation.engines.isolation.schemas import (
    BoundingBox,
    ExtractionResult,
    IsolationConfig,
    IsolationState,
    Mask,
    RasterImage,
)

__all__ = [
    "BoundingBox",
    "ExtractionResult",
    "IsolationConfig",
    "IsolationState",
    "Mask",
    "RasterImage",
]
