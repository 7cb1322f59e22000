"""
compression.py - Image decode and JPEG re-encode.

Pixels are numpy arrays (RGB or grayscale). Encoding the same array at the
same quality always produces the same bytes.
"""

import io
import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from PIL import Image, ImageOps
import cv2

from .errors import CollaboratorFailure

logger = logging.getLogger(__name__)

# Saturation threshold for grayscale conversion
# Only convert to grayscale if mean saturation is below this
GRAYSCALE_SATURATION_THRESHOLD = 10  # Out of 255

# Background used when flattening transparent images
FLATTEN_BACKGROUND = (255, 255, 255)


@dataclass
class CompressedPage:
    """Compressed page data ready for PDF embedding."""
    page_num: int
    image_data: bytes
    page_width_pts: float
    page_height_pts: float

    @property
    def total_size(self) -> int:
        return len(self.image_data)


class Encoder(Protocol):
    """Pixel buffer + quality -> compressed bytes."""

    def encode(self, pixels: np.ndarray, quality: float) -> bytes:
        ...


def to_jpeg_quality(quality: float) -> int:
    """Map quality in (0, 1] to Pillow's 1-100 scale."""
    return max(1, min(100, int(round(quality * 100))))


def is_grayscale_image(image: np.ndarray) -> bool:
    """
    Check if image is effectively grayscale based on saturation.

    Only returns True if the entire page has very low saturation.
    """
    if len(image.shape) != 3 or image.shape[2] != 3:
        return True  # Already grayscale

    hsv = cv2.cvtColor(image, cv2.COLOR_RGB2HSV)
    mean_saturation = np.mean(hsv[:, :, 1])

    is_gray = mean_saturation < GRAYSCALE_SATURATION_THRESHOLD
    logger.debug(f"Mean saturation: {mean_saturation:.1f}, is_grayscale: {is_gray}")

    return is_gray


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode image bytes into an RGB array.

    EXIF orientation is applied and transparency is flattened onto white.

    Raises:
        CollaboratorFailure: data is not a readable image
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
                img = img.convert("RGBA")
                background = Image.new("RGB", img.size, FLATTEN_BACKGROUND)
                background.paste(img, mask=img.split()[-1])
                img = background
            elif img.mode != "RGB":
                img = img.convert("RGB")
            image = np.asarray(img, dtype=np.uint8).copy()
    except Exception as e:
        # Includes DecompressionBombError, which is not an OSError
        raise CollaboratorFailure("decode", str(e)) from e

    logger.debug(f"Decoded image: {image.shape[1]}x{image.shape[0]}")
    return image


class JpegEncoder:
    """
    JPEG encoder backed by Pillow.

    Args:
        collapse_gray: Encode effectively-gray color images as 1-channel JPEG
        subsampling: Pillow chroma subsampling (2 = 4:2:0)
    """

    def __init__(self, collapse_gray: bool = False, subsampling: int = 2):
        self.collapse_gray = collapse_gray
        self.subsampling = subsampling

    def _to_pil(self, image: np.ndarray) -> Image.Image:
        if len(image.shape) == 2:
            return Image.fromarray(image)
        if image.shape[2] == 4:
            image = image[:, :, :3]
        if self.collapse_gray and is_grayscale_image(image):
            gray = cv2.cvtColor(np.ascontiguousarray(image), cv2.COLOR_RGB2GRAY)
            return Image.fromarray(gray)
        return Image.fromarray(np.ascontiguousarray(image))

    def encode(self, pixels: np.ndarray, quality: float) -> bytes:
        """
        Encode pixels as JPEG.

        Args:
            pixels: RGB or grayscale uint8 array
            quality: Quality in (0, 1]

        Returns:
            JPEG bytes
        """
        if not 0 < quality <= 1:
            raise ValueError(f"Quality {quality} is outside (0, 1]")

        img = self._to_pil(pixels)
        buffer = io.BytesIO()
        img.save(
            buffer,
            format="JPEG",
            quality=to_jpeg_quality(quality),
            optimize=True,
            subsampling=self.subsampling
        )
        return buffer.getvalue()
