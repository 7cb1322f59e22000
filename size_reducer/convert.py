"""
convert.py - Place images on A4 PDF pages.

The image sits at the top-left margin, scaled to the printable width
(or down to the printable height for tall images), aspect ratio kept.
"""

import logging
from typing import Iterable, Optional, Tuple

from .compression import Encoder, JpegEncoder, decode_image
from .config import IMAGE_PDF_QUALITY
from .errors import CollaboratorFailure, ConfigurationError
from .pdf_writer import PDFWriter

logger = logging.getLogger(__name__)

POINTS_PER_MM = 72 / 25.4
A4_MM = (210.0, 297.0)
PAGE_MARGIN_MM = 10.0


def mm_to_pt(mm: float) -> float:
    return mm * POINTS_PER_MM


def fit_image(
    image_width: int,
    image_height: int,
    page_size_mm: Tuple[float, float] = A4_MM,
    margin_mm: float = PAGE_MARGIN_MM
) -> Tuple[float, float, float, float]:
    """
    Placement rectangle (x, y, width, height) in points, PDF coordinates.

    Width fills the printable area; height follows the aspect ratio and is
    capped at the printable height.
    """
    page_w = mm_to_pt(page_size_mm[0])
    page_h = mm_to_pt(page_size_mm[1])
    margin = mm_to_pt(margin_mm)
    max_w = page_w - 2 * margin
    max_h = page_h - 2 * margin
    if max_w <= 0 or max_h <= 0:
        raise ConfigurationError(f"Margin {margin_mm} mm leaves no printable area")

    ratio = image_width / image_height
    width = max_w
    height = max_w / ratio
    if height > max_h:
        height = max_h
        width = max_h * ratio

    # PDF origin is bottom-left; anchor to the top margin
    return margin, page_h - margin - height, width, height


def images_to_pdf(
    images: Iterable[bytes],
    quality: float = IMAGE_PDF_QUALITY,
    encoder: Optional[Encoder] = None,
    page_size_mm: Tuple[float, float] = A4_MM,
    margin_mm: float = PAGE_MARGIN_MM
) -> bytes:
    """
    One page per image, in order.

    Args:
        images: Encoded image files (JPEG, PNG, ...)
        quality: JPEG quality for the embedded images
        encoder: Encoder to use (JpegEncoder by default)
        page_size_mm: Page (width, height)
        margin_mm: Margin on every side

    Returns:
        Serialized PDF
    """
    if not 0 < quality <= 1:
        raise ConfigurationError(f"Quality {quality} is outside (0, 1]")
    encoder = encoder or JpegEncoder()
    page_w = mm_to_pt(page_size_mm[0])
    page_h = mm_to_pt(page_size_mm[1])

    with PDFWriter() as writer:
        for index, data in enumerate(images):
            if not data:
                raise ConfigurationError(f"Image {index + 1} is empty")
            pixels = decode_image(data)
            height, width = pixels.shape[:2]
            x, y, draw_w, draw_h = fit_image(width, height, page_size_mm, margin_mm)

            try:
                jpeg = encoder.encode(pixels, quality)
                page = writer.add_page(page_w, page_h)
                writer.draw_image(page, writer.embed_image(jpeg), x, y, draw_w, draw_h)
            except Exception as e:
                raise CollaboratorFailure("assemble", str(e)) from e

            logger.debug(
                f"Image {index + 1}: {width}x{height} placed at "
                f"{draw_w:.1f}x{draw_h:.1f} pt"
            )

        if writer.page_count == 0:
            raise ConfigurationError("No images to convert")
        try:
            return writer.to_bytes()
        except Exception as e:
            raise CollaboratorFailure("assemble", str(e)) from e


def image_to_pdf(data: bytes, quality: float = IMAGE_PDF_QUALITY, **kwargs) -> bytes:
    """Single image to a single-page PDF."""
    return images_to_pdf([data], quality=quality, **kwargs)
