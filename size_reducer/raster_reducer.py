"""
raster_reducer.py - Shrink a single image to a byte budget.

The image is decoded once and re-encoded at 0.95, 0.90, ... until the
output fits or the quality floor is reached.
"""

import logging
from typing import Optional

import numpy as np

from .compression import Encoder, JpegEncoder, decode_image
from .config import DEFAULT_SETTINGS, ReducerSettings
from .errors import ConfigurationError
from .search import (
    ProgressCallback,
    SearchOutcome,
    StepDecaySearch,
    TargetBudget,
    require_target,
)

logger = logging.getLogger(__name__)


class RasterSizeReducer:
    """
    Step-decay JPEG re-encode of one pixel buffer.

    Args:
        encoder: Encoder used for every attempt (JpegEncoder by default)
        settings: Quality start/step/floor and minimum target
        progress: Optional sink for ProgressEvent records
    """

    def __init__(
        self,
        encoder: Optional[Encoder] = None,
        settings: ReducerSettings = DEFAULT_SETTINGS,
        progress: Optional[ProgressCallback] = None
    ):
        self.encoder = encoder or JpegEncoder()
        self.settings = settings
        self.progress = progress
        self.policy = StepDecaySearch(
            start=settings.start_quality,
            step=settings.quality_step,
            floor=settings.min_quality
        )

    def reduce(self, image: np.ndarray, target: TargetBudget) -> SearchOutcome:
        """
        Re-encode image at decreasing quality until it fits target.

        Raises:
            ConfigurationError: target missing or below the minimum
            CollaboratorFailure: the encoder failed
        """
        target = require_target(target, self.settings.min_target_bytes)
        if image is None or getattr(image, "size", 0) == 0:
            raise ConfigurationError("Image is empty")

        logger.info(
            f"Reducing {image.shape[1]}x{image.shape[0]} image to "
            f"{target.max_size_bytes:,} bytes"
        )

        outcome = self.policy.search(
            lambda quality: self.encoder.encode(image, quality),
            max_size_bytes=target.max_size_bytes,
            progress=self.progress,
            stage="encode"
        )

        if outcome.target_met:
            logger.info(
                f"Target met: {outcome.achieved_size_bytes:,} bytes "
                f"at q={outcome.final_quality:.2f}"
            )
        return outcome

    def reduce_bytes(self, data: bytes, target: TargetBudget) -> SearchOutcome:
        """Decode image bytes once, then reduce()."""
        target = require_target(target, self.settings.min_target_bytes)
        if not data:
            raise ConfigurationError("Image data is empty")
        return self.reduce(decode_image(data), target)
