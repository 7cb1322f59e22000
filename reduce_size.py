#!/usr/bin/env python3
"""
reduce_size.py - Size-targeting image and PDF compression CLI.

Usage:
    python reduce_size.py image photo.png --target-kb 200 -o small.jpg
    python reduce_size.py pdf scan.pdf --quality 0.7 -o out.pdf
    python reduce_size.py pdf scan.pdf --target-kb 500 --workers 4
    python reduce_size.py image photo.png -t 8 --min-target-kb 4 --quality-step 0.1
    python reduce_size.py to-pdf a.jpg b.png -o pages.pdf
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Add parent to path when running as script
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent))

from size_reducer.config import DEFAULT_SETTINGS, ReducerSettings
from size_reducer.errors import ConfigurationError
from size_reducer.pipeline import convert_image_files, reduce_image_file, reduce_pdf_file
from size_reducer.search import ProgressEvent, TargetBudget


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def add_min_target(parser):
    parser.add_argument(
        "--min-target-kb",
        type=float,
        default=DEFAULT_SETTINGS.min_target_bytes / 1024,
        help="Smallest target accepted, in KB "
             f"(default: {DEFAULT_SETTINGS.min_target_bytes // 1024})"
    )


def build_settings(args) -> ReducerSettings:
    """Policy settings with command-line overrides applied."""
    overrides = {}
    if args.command in ("image", "pdf"):
        overrides["min_target_bytes"] = TargetBudget.from_kb(args.min_target_kb).max_size_bytes
    if args.command == "image":
        overrides["start_quality"] = args.start_quality
        overrides["quality_step"] = args.quality_step
        overrides["min_quality"] = args.min_quality
    elif args.command == "pdf":
        overrides["render_scale"] = args.scale
    return replace(DEFAULT_SETTINGS, **overrides)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Shrink images and PDFs to a target size.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python reduce_size.py image photo.png --target-kb 200
  python reduce_size.py pdf scan.pdf --quality 0.5
  python reduce_size.py pdf scan.pdf --target-kb 500
  python reduce_size.py to-pdf a.jpg b.png -o pages.pdf

PDF output is fully rasterized: every page becomes one JPEG image.
"""
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    image = commands.add_parser("image", help="Re-encode an image as JPEG within a size budget")
    image.add_argument("input", type=Path, help="Input image")
    image.add_argument("-o", "--output", type=Path, help="Output JPEG")
    image.add_argument(
        "-t", "--target-kb",
        type=float,
        required=True,
        help=f"Target size in KB (minimum {DEFAULT_SETTINGS.min_target_bytes // 1024})"
    )
    image.add_argument(
        "--start-quality",
        type=float,
        default=DEFAULT_SETTINGS.start_quality,
        help=f"First quality tried (default: {DEFAULT_SETTINGS.start_quality})"
    )
    image.add_argument(
        "--quality-step",
        type=float,
        default=DEFAULT_SETTINGS.quality_step,
        help=f"Quality decrement per attempt (default: {DEFAULT_SETTINGS.quality_step})"
    )
    image.add_argument(
        "--min-quality",
        type=float,
        default=DEFAULT_SETTINGS.min_quality,
        help=f"Lowest quality tried (default: {DEFAULT_SETTINGS.min_quality})"
    )
    add_min_target(image)

    pdf = commands.add_parser("pdf", help="Rebuild a PDF from compressed page renders")
    pdf.add_argument("input", type=Path, help="Input PDF")
    pdf.add_argument("-o", "--output", type=Path, help="Output PDF")
    mode = pdf.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "-q", "--quality",
        type=float,
        help="Fixed JPEG quality 0-1 (e.g. 0.7)"
    )
    mode.add_argument(
        "-t", "--target-kb",
        type=float,
        help="Target size in KB; tries each candidate quality in turn"
    )
    pdf.add_argument(
        "--candidates",
        type=float,
        nargs="+",
        help="Candidate qualities for --target-kb, highest first "
             f"(default: {' '.join(str(q) for q in DEFAULT_SETTINGS.document_qualities)})"
    )
    pdf.add_argument(
        "-s", "--scale",
        type=float,
        default=DEFAULT_SETTINGS.render_scale,
        help=f"Render scale relative to 72 DPI (default: {DEFAULT_SETTINGS.render_scale})"
    )
    pdf.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Threads for page encoding (default: 1)"
    )
    add_min_target(pdf)

    to_pdf = commands.add_parser("to-pdf", help="Place images on A4 PDF pages")
    to_pdf.add_argument("input", nargs="+", type=Path, help="Input image(s)")
    to_pdf.add_argument("-o", "--output", type=Path, help="Output PDF")
    to_pdf.add_argument(
        "-q", "--quality",
        type=float,
        default=DEFAULT_SETTINGS.image_pdf_quality,
        help=f"JPEG quality 0-1 (default: {DEFAULT_SETTINGS.image_pdf_quality})"
    )

    return parser.parse_args(argv)


def print_progress(event: ProgressEvent):
    """Print progress to stderr."""
    if event.phase in ("render", "page") and event.page_count:
        width = 40
        filled = int(width * event.page / event.page_count)
        bar = "=" * filled + "-" * (width - filled)
        label = "render" if event.phase == "render" else f"q={event.quality:.2f}"
        print(
            f"\r[{bar}] {event.page}/{event.page_count} {label}",
            end="", file=sys.stderr
        )
        if event.page == event.page_count:
            print(file=sys.stderr)
    elif event.size_bytes is not None:
        print(
            f"Quality {event.quality * 100:.0f}%: {event.size_bytes / 1024:,.0f} KB",
            file=sys.stderr
        )


def run(args) -> int:
    for p in args.input if isinstance(args.input, list) else [args.input]:
        if not p.exists():
            print(f"Error: File not found: {p}", file=sys.stderr)
            return 1

    settings = build_settings(args)
    if args.command == "image":
        output_path = args.output or args.input.with_name(args.input.stem + "_reduced.jpg")
        result = reduce_image_file(
            args.input,
            output_path,
            TargetBudget.from_kb(args.target_kb),
            settings=settings,
            progress=print_progress
        )
    elif args.command == "pdf":
        output_path = args.output or args.input.with_stem(args.input.stem + "_reduced")
        target = TargetBudget.from_kb(args.target_kb) if args.target_kb is not None else None
        result = reduce_pdf_file(
            args.input,
            output_path,
            quality=args.quality,
            target=target,
            candidates=args.candidates,
            settings=settings,
            max_workers=args.workers,
            progress=print_progress
        )
    else:
        first = args.input[0]
        output_path = args.output or first.with_name(first.stem + ".pdf")
        result = convert_image_files(
            args.input, output_path, settings=settings, quality=args.quality
        )

    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print(f"\n{result.summary()}")
    if not result.target_met:
        print(
            f"Warning: target not met; lowest quality gave "
            f"{result.output_size / 1024:,.0f} KB",
            file=sys.stderr
        )
    return 0


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        code = run(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
