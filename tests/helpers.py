"""
Synthetic images, PDFs and fake collaborators shared by the tests.
"""
import io
import struct
import zlib
from contextlib import nullcontext

import numpy as np
from PIL import Image

try:
    import fitz
except ImportError:
    import pymupdf as fitz

from size_reducer.rasterize import RenderedPage


def noise_image(width=256, height=256, seed=0):
    """Random RGB pixels; compresses poorly so sizes are predictable."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def gradient_image(width=400, height=300):
    """Smooth RGB gradient."""
    x = np.linspace(0, 255, width, dtype=np.float32)
    y = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(x, (height, 1))
    g = np.tile(y[:, None], (1, width))
    b = (r + g) / 2
    return np.stack([r, g, b], axis=2).astype(np.uint8)


def encode_png(pixels):
    buffer = io.BytesIO()
    Image.fromarray(pixels).save(buffer, format="PNG")
    return buffer.getvalue()


def make_pdf(pages):
    """
    Build a PDF from (width, height, fill_rgb) tuples.

    Each page is filled with its color so output order can be checked.
    """
    doc = fitz.open()
    for index, (width, height, fill) in enumerate(pages):
        page = doc.new_page(width=width, height=height)
        color = tuple(c / 255 for c in fill)
        page.draw_rect(page.rect, color=color, fill=color)
        page.insert_text((10, 20), f"Page {index + 1}", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


class SizedEncoder:
    """Returns size_for(quality) bytes and records every quality asked for."""

    def __init__(self, size_for):
        self.size_for = size_for
        self.calls = []

    def encode(self, pixels, quality):
        self.calls.append(quality)
        return b"\xff" * self.size_for(quality)


class RecordingEncoder:
    """Wraps a real encoder and records qualities."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def encode(self, pixels, quality):
        self.calls.append(quality)
        return self.inner.encode(pixels, quality)


class FailingEncoder:
    def encode(self, pixels, quality):
        raise RuntimeError("encoder exploded")


class FakeRasterizer:
    """Serves pre-made pixel arrays as pages; counts renders."""

    def __init__(self, images, page_size=(200.0, 200.0)):
        self.images = images
        self.page_size = page_size
        self.render_calls = []

    def open_document(self, data):
        return nullcontext(data)

    def page_count(self, doc):
        return len(self.images)

    def render_page(self, doc, page_num, scale):
        self.render_calls.append(page_num)
        return RenderedPage(
            page_num=page_num,
            image=self.images[page_num],
            page_width_pts=self.page_size[0],
            page_height_pts=self.page_size[1]
        )


def oversized_png(width=20000, height=20000):
    """
    A 1x1 PNG whose IHDR claims width x height.

    Enough for Pillow's decompression-bomb check to fire on open.
    """
    buffer = io.BytesIO()
    Image.new("RGB", (1, 1)).save(buffer, format="PNG")
    data = bytearray(buffer.getvalue())
    data[16:24] = struct.pack(">II", width, height)
    data[29:33] = struct.pack(">I", zlib.crc32(bytes(data[12:29])))
    return bytes(data)
