"""
pdf_writer.py - PDF assembly from JPEG page images.

Every image is embedded as-is (DCTDecode); nothing is re-encoded here.
"""

import io
import logging
from typing import Tuple

import pikepdf
from pikepdf import Pdf, Stream, Dictionary, Name
from PIL import Image

from .compression import CompressedPage

logger = logging.getLogger(__name__)

_COLORSPACES = {
    "L": Name.DeviceGray,
    "RGB": Name.DeviceRGB,
    "CMYK": Name.DeviceCMYK,
}


def jpeg_info(data: bytes) -> Tuple[int, int, str]:
    """Read (width, height, mode) from a JPEG header."""
    with Image.open(io.BytesIO(data)) as img:
        if img.format != "JPEG":
            raise ValueError(f"Expected JPEG data, got {img.format}")
        return img.width, img.height, img.mode


class PDFWriter:
    """
    Assembles JPEG images into a new PDF.

    Usage mirrors a drawing API: add a page, embed an image, draw it.
    """

    def __init__(self):
        self.pdf = Pdf.new()
        self.image_bytes = 0

    @property
    def page_count(self) -> int:
        return len(self.pdf.pages)

    def add_page(self, width: float, height: float) -> pikepdf.Page:
        """Append an empty page of the given size in points."""
        self.pdf.add_blank_page(page_size=(width, height))
        page = self.pdf.pages[-1]
        page.Resources = Dictionary({'/XObject': Dictionary({})})
        page.Contents = self.pdf.make_stream(b"")
        return page

    def embed_image(self, jpeg_data: bytes) -> pikepdf.Object:
        """Embed JPEG bytes as an image XObject and return its reference."""
        width, height, mode = jpeg_info(jpeg_data)
        colorspace = _COLORSPACES.get(mode)
        if colorspace is None:
            raise ValueError(f"Unsupported JPEG color mode: {mode}")

        image_dict = Dictionary({
            '/Type': Name.XObject,
            '/Subtype': Name.Image,
            '/Width': width,
            '/Height': height,
            '/ColorSpace': colorspace,
            '/BitsPerComponent': 8,
            '/Filter': Name.DCTDecode,
        })
        img_stream = Stream(self.pdf, jpeg_data, image_dict)

        self.image_bytes += len(jpeg_data)
        return self.pdf.make_indirect(img_stream)

    def draw_image(
        self,
        page: pikepdf.Page,
        image_ref: pikepdf.Object,
        x: float,
        y: float,
        width: float,
        height: float
    ):
        """Draw an embedded image into the rectangle (x, y, width, height)."""
        xobjects = page.Resources.XObject
        name = f"/Im{len(xobjects)}"
        xobjects[name] = image_ref

        content = (
            f"q\n"
            f"{width:.4f} 0 0 {height:.4f} {x:.4f} {y:.4f} cm\n"
            f"{name} Do\n"
            f"Q\n"
        )
        page.contents_add(Stream(self.pdf, content.encode("ascii")), prepend=False)

    def add_compressed_page(self, compressed: CompressedPage):
        """Add a page whose whole area is one image."""
        page = self.add_page(compressed.page_width_pts, compressed.page_height_pts)
        image_ref = self.embed_image(compressed.image_data)
        self.draw_image(
            page, image_ref, 0, 0,
            compressed.page_width_pts, compressed.page_height_pts
        )
        logger.debug(
            f"Added page {compressed.page_num}: {compressed.total_size:,} bytes"
        )

    def to_bytes(self) -> bytes:
        """Serialize the PDF."""
        buffer = io.BytesIO()
        self.pdf.save(
            buffer,
            compress_streams=True,
            object_stream_mode=pikepdf.ObjectStreamMode.generate,
            deterministic_id=True
        )
        return buffer.getvalue()

    def close(self):
        self.pdf.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

