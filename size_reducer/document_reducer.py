"""
document_reducer.py - Rebuild a PDF from JPEG-compressed page renders.

Pipeline per build:
1. Rasterize every page at the render scale
2. Compress each page as a single JPEG at one quality
3. Wrap each JPEG as a full-bleed page of the original size

Target mode repeats steps 2-3 for each candidate quality (0.9, 0.7, 0.5,
0.3 by default) and keeps the first build that fits. Pages are rasterized
once per run unless reuse_rasterized is off.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .compression import CompressedPage, Encoder, JpegEncoder
from .config import DEFAULT_SETTINGS, ReducerSettings
from .errors import CollaboratorFailure, ConfigurationError, ReducerError
from .pdf_writer import PDFWriter
from .rasterize import PdfRasterizer, Rasterizer, RenderedPage
from .search import (
    CandidateListSearch,
    ProgressCallback,
    ProgressEvent,
    SearchOutcome,
    TargetBudget,
    report,
    require_target,
)

logger = logging.getLogger(__name__)


def check_quality(quality: float) -> float:
    if quality is None or not 0 < quality <= 1:
        raise ConfigurationError(f"Quality {quality} is outside (0, 1]")
    return quality


class DocumentSizeReducer:
    """
    Rasterize-and-recompress PDF reducer.

    Args:
        rasterizer: Page renderer (PdfRasterizer by default)
        encoder: Page encoder (JpegEncoder by default)
        settings: Render scale, candidate list and minimum target
        progress: Optional sink for ProgressEvent records
        max_workers: Threads used to encode the pages of one build (1 = sequential)
        reuse_rasterized: Render pages once per target search instead of once per candidate
    """

    def __init__(
        self,
        rasterizer: Optional[Rasterizer] = None,
        encoder: Optional[Encoder] = None,
        settings: ReducerSettings = DEFAULT_SETTINGS,
        progress: Optional[ProgressCallback] = None,
        max_workers: int = 1,
        reuse_rasterized: bool = True
    ):
        self.rasterizer = rasterizer or PdfRasterizer()
        self.encoder = encoder or JpegEncoder()
        self.settings = settings
        self.progress = progress
        self.max_workers = max(1, max_workers)
        self.reuse_rasterized = reuse_rasterized

    def render_pages(self, document: bytes) -> List[RenderedPage]:
        """
        Rasterize every page, in page order.

        Raises:
            ConfigurationError: empty input or a document without pages
            CollaboratorFailure: the document could not be opened or rendered
        """
        if not document:
            raise ConfigurationError("Document data is empty")

        scale = self.settings.render_scale
        pages = []
        try:
            with self.rasterizer.open_document(document) as doc:
                page_count = self.rasterizer.page_count(doc)
                if page_count == 0:
                    raise ConfigurationError("Document has no pages")

                for page_num in range(page_count):
                    rendered = self.rasterizer.render_page(doc, page_num, scale)
                    pages.append(rendered)
                    report(self.progress, ProgressEvent(
                        phase="render", page=page_num + 1, page_count=page_count
                    ))
        except ReducerError:
            raise
        except Exception as e:
            raise CollaboratorFailure("rasterize", str(e)) from e

        logger.debug(f"Rendered {len(pages)} pages at {scale}x")
        return pages

    def _compress(self, rendered: RenderedPage, quality: float) -> CompressedPage:
        data = self.encoder.encode(rendered.image, quality)
        logger.debug(
            f"Page {rendered.page_num}: {len(data):,} bytes | "
            f"{rendered.width}x{rendered.height} | q={quality:.2f}"
        )
        return CompressedPage(
            page_num=rendered.page_num,
            image_data=data,
            page_width_pts=rendered.page_width_pts,
            page_height_pts=rendered.page_height_pts
        )

    def encode_pages(
        self,
        pages: Sequence[RenderedPage],
        quality: float
    ) -> List[CompressedPage]:
        """Compress every rendered page at one quality, keeping page order."""
        try:
            if self.max_workers == 1:
                compressed = [self._compress(page, quality) for page in pages]
            else:
                # map() yields results in submission order
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    compressed = list(
                        executor.map(lambda page: self._compress(page, quality), pages)
                    )
        except Exception as e:
            raise CollaboratorFailure("encode", f"{e} (quality {quality})") from e

        for page in compressed:
            report(self.progress, ProgressEvent(
                phase="page",
                quality=quality,
                size_bytes=page.total_size,
                page=page.page_num + 1,
                page_count=len(compressed)
            ))
        return compressed

    def assemble(self, compressed: Sequence[CompressedPage]) -> bytes:
        """Build the output PDF, one full-page image per page."""
        try:
            with PDFWriter() as writer:
                for page in compressed:
                    writer.add_compressed_page(page)
                data = writer.to_bytes()
                logger.debug(
                    f"Assembled {writer.page_count} pages: {len(data):,} bytes "
                    f"({writer.image_bytes:,} bytes of images)"
                )
                return data
        except Exception as e:
            raise CollaboratorFailure("assemble", str(e)) from e

    def build(self, pages: Sequence[RenderedPage], quality: float) -> bytes:
        """Encode already-rendered pages at quality and assemble them."""
        return self.assemble(self.encode_pages(pages, quality))

    def reduce_fixed_quality(self, document: bytes, quality: float) -> bytes:
        """
        Rebuild document with every page re-encoded at quality.

        Args:
            document: Source PDF bytes
            quality: JPEG quality in (0, 1]

        Returns:
            Serialized PDF with the same page count and order
        """
        check_quality(quality)
        pages = self.render_pages(document)
        data = self.build(pages, quality)
        logger.info(
            f"Rebuilt {len(pages)} pages at q={quality:.2f}: {len(data):,} bytes"
        )
        return data

    def reduce_to_target(
        self,
        document: bytes,
        target: TargetBudget,
        candidates: Optional[Sequence[float]] = None
    ) -> SearchOutcome:
        """
        Rebuild document at descending candidate qualities until it fits.

        Each candidate is a complete, independent document build. The first
        build within target is returned; otherwise the last candidate's
        build, flagged target_met=False.

        Raises:
            ConfigurationError: bad target, bad candidate list or empty document
            CollaboratorFailure: rendering, encoding or assembly failed
        """
        target = require_target(target, self.settings.min_target_bytes)
        if candidates is None:
            candidates = self.settings.document_qualities
        policy = CandidateListSearch(candidates)
        if not document:
            raise ConfigurationError("Document data is empty")

        logger.info(
            f"Reducing document to {target.max_size_bytes:,} bytes, "
            f"candidates {list(policy.qualities())}"
        )

        if self.reuse_rasterized:
            pages = self.render_pages(document)

            def attempt(quality):
                return self.build(pages, quality)
        else:
            def attempt(quality):
                return self.reduce_fixed_quality(document, quality)

        outcome = policy.search(
            attempt,
            max_size_bytes=target.max_size_bytes,
            progress=self.progress,
            stage="assemble"
        )

        if outcome.target_met:
            logger.info(
                f"Target met at q={outcome.final_quality:.2f}: "
                f"{outcome.achieved_size_bytes:,} bytes"
            )
        return outcome
