"""
Isolation Data Model

RasterImage / Mask / BoundingBox are plain frozen dataclasses around numpy
arrays. IsolationConfig is a validated pydantic model; every numeric
threshold used by the stages lives here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np
from pydantic import BaseModel, Field, ValidationError, model_validator

from symbol_isolation.core.exceptions import InvalidConfigError


# =============================================================================
# Configuration
# =============================================================================

class IsolationConfig(BaseModel):
    """Thresholds for every isolation stage. Defaults reproduce the tuned values."""

    # Background classifier
    alpha_floor: int = Field(128, ge=0, le=256, description="Alpha below this is transparent background")
    white_avg_threshold: float = Field(250, ge=0, le=255, description="Channel average above this is near-white")
    pure_white_threshold: int = Field(252, ge=0, le=255, description="All channels at or above this are pure white")
    dark_threshold: float = Field(30, ge=0, le=255, description="Channel average below this is dark background")
    gray_tol: int = Field(10, ge=0, le=255, description="Max pairwise channel spread for a neutral gray")
    light_threshold: float = Field(240, ge=0, le=255, description="Average above this makes a gray pixel light")

    # Border heuristic
    border_white_ratio: float = Field(0.7, ge=0.0, le=1.0)
    border_white_threshold: int = Field(240, ge=0, le=255)
    border_stride_min: int = Field(5, ge=1)
    border_stride_ratio: float = Field(0.05, ge=0.0, le=1.0)

    # Edges / crop
    edge_threshold: float = Field(30, ge=0)
    crop_padding_min: int = Field(20, ge=0)
    crop_padding_ratio: float = Field(0.1, ge=0.0, le=1.0)

    # Alpha compositor bands
    white_threshold: int = Field(230, ge=0, le=255)
    near_white_luminance: float = Field(220, ge=0, le=255)
    near_white_variance: int = Field(20, ge=0, le=255)
    falloff_luminance: float = Field(200, ge=0, le=255)
    falloff_variance: int = Field(25, ge=0, le=255)
    falloff_max_alpha: int = Field(50, ge=0, le=255)
    falloff_exponent: float = Field(1.5, gt=0)
    soften_luminance: float = Field(180, ge=0, le=255)
    soften_variance: int = Field(30, ge=0, le=255)
    soften_floor: int = Field(180, ge=0, le=255)
    soften_rate: float = Field(3, ge=0)

    # Cleanup passes
    denoise_sigma: float = Field(0.5, ge=0, le=5.0)
    halo_alpha_cutoff: int = Field(60, ge=0, le=255)
    halo_white_threshold: int = Field(220, ge=0, le=255)
    attenuation_alpha_max: int = Field(160, ge=0, le=256)
    attenuation_channel_min: int = Field(180, ge=0, le=255)
    attenuation_luminance: float = Field(200, ge=0, le=255)
    sharpen_enabled: bool = True
    sharpen_amount: float = Field(0.3, ge=0, le=4.0)

    class Config:
        frozen = True
        extra = "forbid"

    def __init__(self, **values: Any):
        try:
            super().__init__(**values)
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid isolation config: {e.error_count()} error(s)",
                errors=[
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ],
            ) from e

    @model_validator(mode="after")
    def check_band_order(self) -> "IsolationConfig":
        if not (self.soften_luminance < self.falloff_luminance < self.near_white_luminance):
            raise ValueError(
                "luminance bands must satisfy soften_luminance < falloff_luminance < near_white_luminance"
            )
        if self.halo_alpha_cutoff >= self.attenuation_alpha_max:
            raise ValueError("halo_alpha_cutoff must be below attenuation_alpha_max")
        return self

    @classmethod
    def build(cls, **values: Any) -> "IsolationConfig":
        """Construct a config; invalid values raise InvalidConfigError."""
        return cls(**values)

    @classmethod
    def from_settings(cls, settings) -> "IsolationConfig":
        return cls.build(sharpen_enabled=settings.ISOLATION_SHARPEN_ENABLED)

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> "IsolationConfig":
        """Return a new config with per-call overrides applied and re-validated."""
        if not overrides:
            return self
        values = self.model_dump()
        values.update(overrides)
        return self.build(**values)


# =============================================================================
# Pixel Buffers
# =============================================================================

def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    Immutable RGBA image. pixels has shape (H, W, 4), dtype uint8, row-major.
    The array is read-only; stages build new buffers instead of writing.
    """
    pixels: np.ndarray

    def __post_init__(self):
        pixels = np.asarray(self.pixels)
        if pixels.dtype != np.uint8:
            raise TypeError(f"RasterImage expects uint8 pixels, got {pixels.dtype}")
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"RasterImage expects (H, W, 4) pixels, got {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("RasterImage must have non-zero width and height")
        if pixels.flags.writeable:
            pixels = _readonly(pixels.copy())
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "RasterImage":
        """Accept gray (H, W), RGB (H, W, 3) or RGBA (H, W, 4) uint8 arrays."""
        array = np.asarray(array, dtype=np.uint8)
        if array.ndim == 2:
            array = np.stack([array, array, array], axis=-1)
        if array.ndim == 3 and array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array, alpha], axis=-1)
        return cls(array)

    @classmethod
    def from_buffer(cls, width: int, height: int, buffer: bytes) -> "RasterImage":
        """Wrap a raw row-major RGBA byte buffer of width * height * 4 bytes."""
        expected = width * height * 4
        if len(buffer) != expected:
            raise ValueError(f"Buffer of {len(buffer)} bytes does not match {width}x{height} RGBA ({expected})")
        array = np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, 4).copy()
        return cls(array)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def with_alpha(self, alpha: np.ndarray) -> "RasterImage":
        """New image with the same RGB and the given alpha plane."""
        pixels = self.pixels.copy()
        pixels[:, :, 3] = alpha
        return RasterImage(_readonly(pixels))

    def crop(self, bbox: "BoundingBox") -> "RasterImage":
        return RasterImage(_readonly(self.pixels[bbox.slices()].copy()))

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    def same_pixels(self, other: "RasterImage") -> bool:
        return self.pixels.shape == other.pixels.shape and np.array_equal(self.pixels, other.pixels)


@dataclass(frozen=True, eq=False)
class Mask:
    """Boolean per-pixel mask with the dimensions of its source image."""
    bits: np.ndarray

    def __post_init__(self):
        bits = np.asarray(self.bits, dtype=bool)
        if bits.ndim != 2:
            raise ValueError(f"Mask expects a 2-D array, got {bits.shape}")
        if bits.flags.writeable:
            bits = _readonly(bits.copy())
        object.__setattr__(self, "bits", bits)

    @classmethod
    def empty(cls, width: int, height: int) -> "Mask":
        return cls(np.zeros((height, width), dtype=bool))

    @property
    def width(self) -> int:
        return int(self.bits.shape[1])

    @property
    def height(self) -> int:
        return int(self.bits.shape[0])

    def __or__(self, other: "Mask") -> "Mask":
        self._check_same_shape(other)
        return Mask(self.bits | other.bits)

    def __and__(self, other: "Mask") -> "Mask":
        self._check_same_shape(other)
        return Mask(self.bits & other.bits)

    def __invert__(self) -> "Mask":
        return Mask(~self.bits)

    def any(self) -> bool:
        return bool(self.bits.any())

    def count(self) -> int:
        return int(self.bits.sum())

    def crop(self, bbox: "BoundingBox") -> "Mask":
        return Mask(self.bits[bbox.slices()])

    def _check_same_shape(self, other: "Mask"):
        if self.bits.shape != other.bits.shape:
            raise ValueError(f"Mask shapes differ: {self.bits.shape} vs {other.bits.shape}")


@dataclass(frozen=True)
class BoundingBox:
    """
    Half-open rectangle: min_* inclusive, max_* exclusive.
    Invariant when non-empty: 0 <= min_x < max_x <= width (same for y).
    """
    min_x: int
    min_y: int
    max_x: int
    max_y: int

    def __post_init__(self):
        if self.min_x < 0 or self.min_y < 0:
            raise ValueError(f"BoundingBox origin must be non-negative: {self}")
        if self.max_x <= self.min_x or self.max_y <= self.min_y:
            raise ValueError(f"BoundingBox must be non-empty: {self}")

    @classmethod
    def full_frame(cls, width: int, height: int) -> "BoundingBox":
        return cls(0, 0, width, height)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    def pad(self, padding: int, width: int, height: int) -> "BoundingBox":
        """Grow by padding on every side, clamped to a width x height frame."""
        return BoundingBox(
            min_x=max(0, self.min_x - padding),
            min_y=max(0, self.min_y - padding),
            max_x=min(width, self.max_x + padding),
            max_y=min(height, self.max_y + padding),
        )

    def slices(self) -> Tuple[slice, slice]:
        """(rows, cols) slices for numpy indexing."""
        return slice(self.min_y, self.max_y), slice(self.min_x, self.max_x)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return self.min_x, self.min_y, self.max_x, self.max_y


# =============================================================================
# Results
# =============================================================================

class IsolationState(str, Enum):
    SKIPPED = "skipped"
    PROCESSED = "processed"
    FALLBACK_ORIGINAL = "fallback_original"


@dataclass(frozen=True)
class ExtractionResult:
    """Unit returned by the orchestrator."""
    image: RasterImage
    bbox: BoundingBox
    state: IsolationState
    diagnostic: Optional[Dict[str, Any]] = None

    @property
    def skipped(self) -> bool:
        return self.state == IsolationState.SKIPPED

    @property
    def fallback_used(self) -> bool:
        return self.state == IsolationState.FALLBACK_ORIGINAL

    @property
    def processed(self) -> bool:
        return self.state == IsolationState.PROCESSED
