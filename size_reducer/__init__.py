"""
Size Reducer - Rasterize-and-recompress size targeting for images and PDFs.

Images are re-encoded at decreasing JPEG quality until they fit a byte
budget. PDFs are rebuilt from JPEG page renders at a fixed quality or at
the first of a short list of qualities that fits the budget.
"""

from .config import ReducerSettings
from .convert import image_to_pdf, images_to_pdf
from .document_reducer import DocumentSizeReducer
from .errors import CollaboratorFailure, ConfigurationError, ReducerError
from .raster_reducer import RasterSizeReducer
from .search import ProgressEvent, SearchOutcome, TargetBudget

__version__ = "1.0.0"

__all__ = [
    "CollaboratorFailure",
    "ConfigurationError",
    "DocumentSizeReducer",
    "ProgressEvent",
    "RasterSizeReducer",
    "ReducerError",
    "ReducerSettings",
    "SearchOutcome",
    "TargetBudget",
    "image_to_pdf",
    "images_to_pdf",
]
