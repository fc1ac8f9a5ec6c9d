import io

import numpy as np
import pytest
from PIL import Image

from symbol_isolation.core.exceptions import DecodeFailureError
from symbol_isolation.engines.isolation.codec import decode_image, encode_png


def test_decode_rgb_png_gets_opaque_alpha():
    buffer = io.BytesIO()
    Image.new("RGB", (7, 5), (10, 20, 30)).save(buffer, format="PNG")

    image = decode_image(buffer.getvalue())

    assert image.size == (7, 5)
    assert image.pixels[0, 0].tolist() == [10, 20, 30, 255]


def test_decode_grayscale_jpeg():
    buffer = io.BytesIO()
    Image.new("L", (16, 16), 128).save(buffer, format="JPEG")

    image = decode_image(buffer.getvalue())

    assert image.size == (16, 16)
    assert (image.alpha == 255).all()


def test_encode_png_preserves_alpha(isolated_image):
    decoded = decode_image(encode_png(isolated_image))
    assert decoded.same_pixels(isolated_image)


@pytest.mark.parametrize("payload", [
    b"",
    b"definitely not an image",
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR",  # truncated header
])
def test_undecodable_payloads(payload):
    with pytest.raises(DecodeFailureError) as exc_info:
        decode_image(payload)
    assert exc_info.value.code == 415
