"""
Image Codec Boundary

Decode encoded bytes (anything Pillow reads) into a RasterImage and encode a
RasterImage back to PNG. No network or file I/O happens here.
"""

import io

import numpy as np
from PIL import Image, UnidentifiedImageError

from symbol_isolation.core.exceptions import AllocationFailureError, DecodeFailureError
from symbol_isolation.engines.isolation.schemas import RasterImage


def decode_image(data: bytes) -> RasterImage:
    """
    Decode image bytes to RGBA.

    Raises:
        DecodeFailureError: empty, truncated or unsupported input
        AllocationFailureError: the decoded buffer does not fit in memory
    """
    if not data:
        raise DecodeFailureError("Empty image payload")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            rgba = img.convert("RGBA")
    except MemoryError as e:
        raise AllocationFailureError(details={"input_size": len(data)}) from e
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeFailureError(
            f"Could not decode image: {e}",
            details={"input_size": len(data), "error_type": type(e).__name__}
        ) from e

    return RasterImage(np.array(rgba, dtype=np.uint8))


def encode_png(image: RasterImage) -> bytes:
    """Encode as PNG with the alpha channel preserved."""
    buffer = io.BytesIO()
    # (H, W, 4) uint8 is inferred as RGBA
    Image.fromarray(np.ascontiguousarray(image.pixels)).save(buffer, format="PNG")
    return buffer.getvalue()
