"""
pipeline.py - File-level reduce/convert operations.

Reads input files, runs a reducer, writes the output and returns a
ReductionResult with statistics. Rendering and encoding failures are
logged and recorded on the result; configuration errors propagate.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .config import DEFAULT_SETTINGS, ReducerSettings
from .convert import images_to_pdf
from .document_reducer import DocumentSizeReducer
from .errors import ConfigurationError
from .raster_reducer import RasterSizeReducer
from .search import ProgressCallback, TargetBudget

logger = logging.getLogger(__name__)


@dataclass
class ReductionResult:
    """Result of reducing or converting a file."""
    input_path: Path
    output_path: Path
    success: bool
    error: Optional[str] = None

    input_size: int = 0
    output_size: int = 0
    total_time: float = 0.0

    quality: Optional[float] = None
    target_size: Optional[int] = None
    target_met: bool = True

    @property
    def reduction_pct(self) -> float:
        if self.input_size == 0:
            return 0
        return (1 - self.output_size / self.input_size) * 100

    def summary(self) -> str:
        lines = [
            f"Input:  {self.input_path.name} ({self.input_size:,} bytes)",
            f"Output: {self.output_path.name} ({self.output_size:,} bytes)",
            f"Reduction: {self.reduction_pct:.1f}%",
        ]
        if self.quality is not None:
            lines.append(f"Quality: {self.quality * 100:.0f}%")
        if self.target_size is not None:
            status = "met" if self.target_met else "NOT met"
            lines.append(f"Target: {self.target_size:,} bytes ({status})")
        lines.append(f"Time: {self.total_time:.1f}s")
        return "\n".join(lines)


def _input_size(paths: Sequence[Path]) -> int:
    return sum(p.stat().st_size for p in paths)


def reduce_image_file(
    input_path: Path,
    output_path: Path,
    target: TargetBudget,
    settings: ReducerSettings = DEFAULT_SETTINGS,
    progress: Optional[ProgressCallback] = None
) -> ReductionResult:
    """
    Re-encode an image as JPEG within target.

    Output is written even when the target is not met.
    """
    input_path = Path(input_path)
    output_path = Path(output_path)
    result = ReductionResult(input_path=input_path, output_path=output_path, success=False)

    reducer = RasterSizeReducer(settings=settings, progress=progress)
    start_time = time.time()
    try:
        result.input_size = input_path.stat().st_size
        outcome = reducer.reduce_bytes(input_path.read_bytes(), target)

        output_path.write_bytes(outcome.final_bytes)
        result.output_size = len(outcome.final_bytes)
        result.quality = outcome.final_quality
        result.target_size = target.max_size_bytes
        result.target_met = outcome.target_met
        result.success = True
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"Image reduction failed: {e}")
        result.error = str(e)

    result.total_time = time.time() - start_time
    return result


def reduce_pdf_file(
    input_path: Path,
    output_path: Path,
    quality: Optional[float] = None,
    target: Optional[TargetBudget] = None,
    candidates: Optional[Sequence[float]] = None,
    settings: ReducerSettings = DEFAULT_SETTINGS,
    max_workers: int = 1,
    progress: Optional[ProgressCallback] = None
) -> ReductionResult:
    """
    Rebuild a PDF from recompressed page renders.

    Args:
        input_path: Input PDF
        output_path: Output PDF
        quality: Fixed quality (used when target is None)
        target: Size budget; enables the candidate search
        candidates: Candidate qualities for the search
        settings: Policy parameters
        max_workers: Threads for page encoding
        progress: Optional ProgressEvent sink

    Returns:
        ReductionResult with statistics
    """
    input_path = Path(input_path)
    output_path = Path(output_path)
    result = ReductionResult(input_path=input_path, output_path=output_path, success=False)

    reducer = DocumentSizeReducer(
        settings=settings, progress=progress, max_workers=max_workers
    )
    start_time = time.time()
    try:
        result.input_size = input_path.stat().st_size
        document = input_path.read_bytes()

        if target is not None:
            outcome = reducer.reduce_to_target(document, target, candidates)
            data = outcome.final_bytes
            result.quality = outcome.final_quality
            result.target_size = target.max_size_bytes
            result.target_met = outcome.target_met
        else:
            if quality is None:
                quality = settings.document_qualities[0]
            data = reducer.reduce_fixed_quality(document, quality)
            result.quality = quality

        output_path.write_bytes(data)
        result.output_size = len(data)
        result.success = True
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"PDF reduction failed: {e}")
        result.error = str(e)

    result.total_time = time.time() - start_time
    logger.info(f"\n{result.summary()}")
    return result


def convert_image_files(
    input_paths: List[Path],
    output_path: Path,
    settings: ReducerSettings = DEFAULT_SETTINGS,
    quality: Optional[float] = None
) -> ReductionResult:
    """Convert images to a PDF, one A4 page per image."""
    input_paths = [Path(p) for p in input_paths]
    output_path = Path(output_path)
    result = ReductionResult(
        input_path=input_paths[0] if input_paths else Path(),
        output_path=output_path,
        success=False
    )
    if quality is None:
        quality = settings.image_pdf_quality

    start_time = time.time()
    try:
        result.input_size = _input_size(input_paths)
        data = images_to_pdf((p.read_bytes() for p in input_paths), quality=quality)
        output_path.write_bytes(data)
        result.output_size = len(data)
        result.quality = quality
        result.success = True
        logger.info(f"Converted {len(input_paths)} image(s) to {output_path}")
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"Conversion failed: {e}")
        result.error = str(e)

    result.total_time = time.time() - start_time
    return result
