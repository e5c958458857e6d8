"""Command-line entry point for the DDSM converter."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, List, Sequence

from .config import (
    DEFAULT_DECOMPRESSOR,
    DEFAULT_IMAGE_CONVERTER,
    DEFAULT_RAW_CONVERTER,
    build_config,
)
from .discovery import find_images
from .errors import ConversionError
from .pipeline import describe_image, run_batch

logger = logging.getLogger("ddsm_png.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("convert", *argv)


def _add_search_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "names",
        nargs="*",
        help="Image names or glob patterns (e.g. A_1234_1.LEFT_CC or 'A_1234_1.*'); "
        "all scans when omitted",
    )
    parser.add_argument(
        "--root",
        default=".",
        type=Path,
        help="Directory tree to search for .LJPEG scans",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_convert_arguments(parser: argparse.ArgumentParser) -> None:
    _add_search_arguments(parser)
    parser.add_argument(
        "--output",
        default=None,
        type=Path,
        help="Directory for PNG files (default: next to each source scan)",
    )
    parser.add_argument(
        "--work-dir",
        default=None,
        type=Path,
        help="Copy each scan here before decompressing so the source tree is left untouched",
    )
    parser.add_argument(
        "--jpeg",
        default=None,
        help=f"Lossless JPEG decompressor (default: ${{DDSM_JPEG}} or {DEFAULT_DECOMPRESSOR})",
    )
    parser.add_argument(
        "--ddsmraw2pnm",
        default=None,
        help=f"Raw-to-PNM converter (default: ${{DDSM_RAW2PNM}} or {DEFAULT_RAW_CONVERTER})",
    )
    parser.add_argument(
        "--convert",
        default=None,
        help=f"Image converter used for PNG output (default: ${{DDSM_CONVERT}} or {DEFAULT_IMAGE_CONVERTER})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for each external program before giving up",
    )
    parser.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of images to convert in parallel",
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find DDSM scans, read their .ics metadata and convert them to 16-bit PNG.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert_parser = subparsers.add_parser(
        "convert", help="Convert matching scans to PNG"
    )
    _add_convert_arguments(convert_parser)

    describe_parser = subparsers.add_parser(
        "describe", help="Print the rows, cols and digitizer of matching scans"
    )
    _add_search_arguments(describe_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _find(args: argparse.Namespace) -> List[Path]:
    try:
        sources = find_images(args.names, args.root)
    except FileNotFoundError as exc:
        logger.error("%s", exc)
        return []
    if not sources:
        patterns = ", ".join(args.names) or "*"
        logger.error("No scans matching %s under %s", patterns, args.root)
    return sources


def _run_convert(args: argparse.Namespace) -> int:
    try:
        config = build_config(
            output_root=args.output,
            work_dir=args.work_dir,
            decompressor=args.jpeg,
            raw_converter=args.ddsmraw2pnm,
            image_converter=args.convert,
            timeout=args.timeout,
            jobs=args.jobs,
        )
    except ValueError as exc:
        logger.error("%s", exc)
        return 2

    sources = _find(args)
    if not sources:
        return 1

    overall_start = time.perf_counter()
    report = run_batch(sources, config)
    total_elapsed = time.perf_counter() - overall_start

    logger.info(
        "Finished in %.2fs (%d/%d succeeded, %d failed)",
        total_elapsed,
        len(report.results),
        len(sources),
        len(report.failures),
    )
    for result in report.results:
        logger.debug(
            "Timing for %s -> total: %.2fs | %s",
            result.source.name,
            result.total_seconds,
            " | ".join(f"{stage}: {seconds:.2f}s" for stage, seconds in result.stage_seconds.items()),
        )
        sys.stdout.write(f"{result.output_path}\n")
    sys.stdout.flush()
    return 0 if report.ok else 1


def _run_describe(args: argparse.Namespace) -> int:
    sources = _find(args)
    if not sources:
        return 1

    failed = 0
    for source in sources:
        try:
            metadata = describe_image(source)
        except ConversionError as exc:
            logger.error("Failed to describe %s: %s", source.name, exc)
            failed += 1
            continue
        sys.stdout.write(f"{source}\t{metadata.descriptor}\n")
    sys.stdout.flush()
    return 1 if failed else 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    if args.command == "describe":
        return _run_describe(args)
    return _run_convert(args)


if __name__ == "__main__":
    sys.exit(main())
