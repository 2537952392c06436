#!/usr/bin/env python3
"""CLI interface for the PDF Page Annotator."""

import argparse
import sys
import os
import logging
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent))

from models.config import AnnotatorConfig, AnnotationSummary, OCRSettings
from models.data_models import DetectionMode, OCRLanguage, OCRLevel, Unit
from services.exporter import ExportError, write_json
from services.page_annotator import PageAnnotator


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Detect tables and text on a PDF page and export bounding boxes.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Detect table regions on page 1
  python main.py input.pdf --output boxes.json

  # Detect individual table cells on page 3
  python main.py input.pdf --page 3 --mode cells --output cells.json

  # Word-level OCR in Japanese, keeping only confident words
  python main.py input.pdf --no-tables --ocr --language jpn --min-confidence 80 --ocr-output text.json
        """,
    )

    parser.add_argument(
        "input",
        help="Input PDF file path",
    )
    parser.add_argument(
        "--page", "-p",
        type=int,
        default=1,
        help="Page number, starting at 1 (default: 1)",
    )

    # Detection options
    parser.add_argument(
        "--mode", "-m",
        choices=[m.value for m in DetectionMode],
        default=None,
        help="Table detection mode (default: ANNOTATOR_DETECTION_MODE or regions)",
    )
    parser.add_argument(
        "--no-tables",
        action="store_true",
        help="Skip table detection",
    )

    # OCR options
    parser.add_argument(
        "--ocr",
        action="store_true",
        help="Run OCR on the page",
    )
    parser.add_argument(
        "--language", "-l",
        choices=[lang.value for lang in OCRLanguage],
        default=None,
        help="OCR language",
    )
    parser.add_argument(
        "--level",
        choices=[level.value for level in OCRLevel],
        default=None,
        help="OCR granularity turned into boxes",
    )
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=None,
        help="Minimum OCR confidence, 0-100",
    )
    parser.add_argument(
        "--no-enhance",
        action="store_true",
        help="Skip image enhancement before OCR",
    )
    parser.add_argument(
        "--gpu",
        action="store_true",
        help="Enable GPU acceleration for OCR",
    )

    # Output options
    parser.add_argument(
        "--unit", "-u",
        choices=[unit.value for unit in Unit],
        default=Unit.POINT.value,
        help="Unit used when listing boxes (default: pt)",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="Write the bounding-box export to this JSON file",
    )
    parser.add_argument(
        "--ocr-output",
        default=None,
        help="Write the OCR export to this JSON file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output",
    )

    return parser.parse_args(argv)


def validate_args(args: argparse.Namespace) -> bool:
    """Validate command-line arguments."""
    if not os.path.exists(args.input):
        print(f"Error: Input file not found: {args.input}")
        return False

    if not args.input.lower().endswith(".pdf"):
        print(f"Error: Input file must be a PDF: {args.input}")
        return False

    if args.page < 1:
        print(f"Error: Page must be 1 or greater: {args.page}")
        return False

    if args.min_confidence is not None and not 0 <= args.min_confidence <= 100:
        print(f"Error: --min-confidence must be between 0 and 100: {args.min_confidence}")
        return False

    if args.ocr_output and not args.ocr:
        print("Error: --ocr-output requires --ocr")
        return False

    return True


def build_config(args: argparse.Namespace) -> AnnotatorConfig:
    """Environment defaults overridden by command-line flags."""
    config = AnnotatorConfig.from_env()
    ocr = config.ocr
    config.ocr = OCRSettings(
        language=OCRLanguage(args.language) if args.language else ocr.language,
        level=OCRLevel(args.level) if args.level else ocr.level,
        min_confidence=args.min_confidence if args.min_confidence is not None else ocr.min_confidence,
        enhance_image=ocr.enhance_image and not args.no_enhance,
    )
    if args.mode:
        config.detection_mode = DetectionMode(args.mode)
    if args.gpu:
        config.use_gpu = True
    return config


def print_summary(summary: AnnotationSummary, quiet: bool = False) -> None:
    """Print annotation summary."""
    if quiet:
        return

    print("\n" + "=" * 60)
    print("ANNOTATION SUMMARY")
    print("=" * 60)

    status = "✓" if summary.success else "✗"
    print(f"\n{status} {summary.input_file} (page {summary.page})")
    print(f"  Table boxes: {summary.table_boxes}")
    if summary.strategy:
        print(f"  Detection strategy: {summary.strategy}")
    print(f"  OCR boxes: {summary.ocr_boxes}")
    print(f"  Time: {summary.processing_time_seconds:.2f}s")

    if summary.errors:
        print(f"  Errors: {len(summary.errors)}")
        for error in summary.errors[:3]:  # Show first 3 errors
            print(f"    - {error}")
        if len(summary.errors) > 3:
            print(f"    ... and {len(summary.errors) - 3} more")

    print("=" * 60)


def print_boxes(annotator: PageAnnotator, unit: Unit) -> None:
    """List stored boxes in the requested unit."""
    for box, rect in annotator.boxes_in_unit(unit):
        label = box.role.value if box.role else box.effective_kind.value
        print(f"  {box.id:<40} {label:<16} x={rect.x:g} y={rect.y:g} "
              f"w={rect.width:g} h={rect.height:g} {unit.value}")


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    # Setup logging
    if args.quiet:
        logging.basicConfig(level=logging.ERROR)
    else:
        setup_logging(args.verbose)

    if not validate_args(args):
        return 1

    config = build_config(args)
    mode = None if args.no_tables else config.detection_mode

    if not args.quiet:
        print("PDF Page Annotator")
        print(f"Page: {args.page}")
        print(f"Table detection: {mode.value if mode else 'skipped'}")
        if args.ocr:
            print(f"OCR: {config.ocr.language.value}, {config.ocr.level.value} level, "
                  f"min confidence {config.ocr.min_confidence:g}")
        print()

    annotator = PageAnnotator(config)
    summary = annotator.annotate_file(args.input, page=args.page, mode=mode, run_ocr=args.ocr)

    if summary.success:
        try:
            if args.output:
                write_json(annotator.export_boxes(), args.output)
            if args.ocr_output:
                write_json(annotator.export_ocr(), args.ocr_output)
        except ExportError as e:
            annotator.error_handler.handle_export_error(e)
            summary.add_error(str(e))

    if summary.success and not args.quiet:
        print_boxes(annotator, Unit(args.unit))
    print_summary(summary, args.quiet)

    return 0 if summary.success else 1


if __name__ == "__main__":
    sys.exit(main())
