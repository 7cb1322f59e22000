"""
config.py - Search policy parameters.

All reducers take a ReducerSettings; the module constants are its defaults.
"""

from dataclasses import dataclass, field
from typing import Tuple

# Step-decay search (single images)
START_QUALITY = 0.95
QUALITY_STEP = 0.05
MIN_QUALITY = 0.05  # Floor, never encoded below this

# Discrete candidate list (documents), strictly descending
DOCUMENT_QUALITIES = (0.9, 0.7, 0.5, 0.3)

# Page render scale relative to nominal page size (72 DPI)
RENDER_SCALE = 2.0

# Smallest target accepted; anything below is a configuration error
MIN_TARGET_BYTES = 10 * 1024  # 10 KB

# Quality used when converting an image to a PDF page
IMAGE_PDF_QUALITY = 0.92


@dataclass(frozen=True)
class ReducerSettings:
    """Policy parameters shared by the reducers."""
    start_quality: float = START_QUALITY
    quality_step: float = QUALITY_STEP
    min_quality: float = MIN_QUALITY
    document_qualities: Tuple[float, ...] = field(default=DOCUMENT_QUALITIES)
    render_scale: float = RENDER_SCALE
    min_target_bytes: int = MIN_TARGET_BYTES
    image_pdf_quality: float = IMAGE_PDF_QUALITY


DEFAULT_SETTINGS = ReducerSettings()
