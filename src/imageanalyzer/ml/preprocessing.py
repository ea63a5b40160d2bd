"""Image preprocessing pipeline.

Decodes uploaded bytes into RGB arrays and turns RGB arrays into the
float32 input tensor expected by Teachable Machine image models
(center square crop, resize to ``imageSize``, scale to [-1, 1]).
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from imageanalyzer.errors import InvalidImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray


def decode_image(image_bytes: bytes, max_pixels: int) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGB uint8 numpy array.

    Args:
        image_bytes: Raw file bytes (any format Pillow can open).
        max_pixels: Upper bound on width * height.

    Returns:
        HxWx3 RGB uint8 numpy array with EXIF orientation applied.

    Raises:
        InvalidImageError: If the image cannot be decoded or exceeds size limits.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if width * height > max_pixels:
                raise InvalidImageError(f"Image is {width}x{height}, which exceeds {max_pixels} pixels")
            img.load()
            upright = ImageOps.exif_transpose(img)
            rgb = upright.convert("RGB")
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise InvalidImageError("Failed to decode image") from exc
    return np.asarray(rgb, dtype=np.uint8)


def center_crop_square(image: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """Crop the largest centered square from an HxWxC image."""
    height, width = image.shape[:2]
    side = min(height, width)
    top = (height - side) // 2
    left = (width - side) // 2
    return image[top : top + side, left : left + side]


def prepare_input(image: NDArray[np.uint8], size: int, *, channels_first: bool = False) -> NDArray[np.float32]:
    """Prepare an RGB image for the classifier.

    Args:
        image: HxWx3 RGB uint8 array.
        size: Square side length the model was trained on.
        channels_first: Emit NCHW instead of NHWC.

    Returns:
        Batch of one float32 tensor scaled to [-1, 1].
    """
    square = center_crop_square(image)
    resized = Image.fromarray(square).resize((size, size), Image.Resampling.BILINEAR)
    tensor = np.asarray(resized, dtype=np.float32) / 127.5 - 1.0
    if channels_first:
        tensor = tensor.transpose(2, 0, 1)
    return tensor[np.newaxis, ...]
