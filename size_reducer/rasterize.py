"""
rasterize.py - PDF page rendering using PyMuPDF.

Fast in-memory rendering. Output for a fixed (document, page, scale) is
deterministic.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
try:
    import fitz  # pip install pymupdf
except ImportError:
    import pymupdf as fitz  # apt install python3-pymupdf

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class RenderedPage:
    """A rasterized page and its nominal size in PDF points (1/72 inch)."""
    page_num: int
    image: np.ndarray
    page_width_pts: float
    page_height_pts: float

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]


class Rasterizer(Protocol):
    """Document page -> pixel buffer."""

    def open_document(self, data: bytes):
        ...

    def page_count(self, doc) -> int:
        ...

    def render_page(self, doc, page_num: int, scale: float) -> RenderedPage:
        ...


class PdfRasterizer:
    """Renders PDF pages to RGB arrays with PyMuPDF."""

    def open_document(self, data: bytes) -> "fitz.Document":
        """Open a PDF held in memory. Use as a context manager."""
        return fitz.open(stream=data, filetype="pdf")

    def page_count(self, doc: "fitz.Document") -> int:
        return len(doc)

    def render_page(
        self,
        doc: "fitz.Document",
        page_num: int,
        scale: float = 2.0
    ) -> RenderedPage:
        """
        Rasterize a single PDF page to RGB image.

        Args:
            doc: Open PyMuPDF document
            page_num: 0-indexed page number
            scale: Zoom relative to 72 DPI

        Returns:
            RenderedPage with the pixel array and page size in points
        """
        if scale <= 0:
            raise ConfigurationError(f"Render scale must be positive, got {scale}")

        page = doc[page_num]

        # Get page dimensions in points
        rect = page.rect
        matrix = fitz.Matrix(scale, scale)

        # Render to pixmap (in-memory)
        pixmap = page.get_pixmap(matrix=matrix, alpha=False, colorspace=fitz.csRGB)

        # Convert to numpy array (RGB)
        image = np.frombuffer(pixmap.samples, dtype=np.uint8).reshape(
            pixmap.height, pixmap.width, 3
        ).copy()  # Copy to own the memory

        logger.debug(
            f"Rasterized page {page_num}: {pixmap.width}x{pixmap.height} @ {scale}x"
        )

        return RenderedPage(
            page_num=page_num,
            image=image,
            page_width_pts=rect.width,
            page_height_pts=rect.height
        )
