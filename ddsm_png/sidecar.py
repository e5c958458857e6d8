"""Sidecar (``.ics``) parsing and scan metadata extraction."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .errors import DigitizerVariantUndetermined, MetadataIncomplete, SidecarNotFound
from .models import DigitizerRecord, ImageDescriptor, ScanMetadata, SidecarRecord, ViewRecord

logger = logging.getLogger("ddsm_png")

DIGITIZER_KEY = "DIGITIZER"
LINES_KEY = "LINES"
PIXELS_KEY = "PIXELS_PER_LINE"

HOWTEK = "howtek"
HOWTEK_VARIANTS = {"A": "howtek-mgh", "D": "howtek-ismd"}


def _positive_int_after(fields: Sequence[str], key: str) -> Optional[int]:
    try:
        value = int(fields[fields.index(key) + 1])
    except (ValueError, IndexError):
        return None
    return value if value > 0 else None


def parse_line(line: str, line_number: int) -> Optional[SidecarRecord]:
    """Turn one sidecar line into a typed record, or ``None`` if unrecognised."""
    fields = line.split()
    if not fields:
        return None

    if fields[0] == DIGITIZER_KEY:
        if len(fields) < 2:
            return None
        return DigitizerRecord(name=fields[1].lower(), line_number=line_number)

    if LINES_KEY not in fields or PIXELS_KEY not in fields:
        return None
    # Views match whole fields only: "A_1_1.RIGHT_CC" is not the RIGHT_CC view.
    first_key = min(fields.index(LINES_KEY), fields.index(PIXELS_KEY))
    labels = tuple(fields[:first_key])
    if not labels:
        return None
    rows = _positive_int_after(fields, LINES_KEY)
    cols = _positive_int_after(fields, PIXELS_KEY)
    if rows is None or cols is None:
        logger.debug("Ignoring malformed dimension line %d: %s", line_number, line.strip())
        return None
    return ViewRecord(labels=labels, rows=rows, cols=cols, line_number=line_number)


def iter_records(lines: Iterable[str]) -> Iterable[SidecarRecord]:
    for line_number, line in enumerate(lines, start=1):
        record = parse_line(line, line_number)
        if record is not None:
            yield record


def parse_sidecar(path: Path) -> List[SidecarRecord]:
    """Read a sidecar file and return every recognised record in file order."""
    try:
        with path.open("r", encoding="utf-8", errors="replace") as handle:
            return list(iter_records(handle))
    except OSError as exc:
        raise SidecarNotFound(f"Cannot read sidecar {path}: {exc}") from exc


def normalize_digitizer(name: str, image: ImageDescriptor) -> str:
    """Lowercase the digitizer and resolve the howtek site variant."""
    name = name.lower()
    if name != HOWTEK:
        return name
    variant = HOWTEK_VARIANTS.get(image.case_prefix)
    if variant is None:
        raise DigitizerVariantUndetermined(
            f"Cannot determine howtek variant for {image.name}: "
            f"name must start with A or D"
        )
    return variant


def metadata_from_records(
    image: ImageDescriptor,
    records: Iterable[SidecarRecord],
) -> ScanMetadata:
    view = image.view_token
    dimensions: Optional[ViewRecord] = None
    digitizer: Optional[DigitizerRecord] = None
    for record in records:
        if isinstance(record, ViewRecord):
            if dimensions is None and view in record.labels:
                dimensions = record
        elif digitizer is None:
            digitizer = record

    if dimensions is None or digitizer is None:
        missing = []
        if dimensions is None:
            missing.append(f"dimensions for view {view}")
        if digitizer is None:
            missing.append("digitizer")
        raise MetadataIncomplete(
            f"Sidecar metadata incomplete for {image.name}: missing {' and '.join(missing)}"
        )

    return ScanMetadata(
        rows=dimensions.rows,
        cols=dimensions.cols,
        digitizer=normalize_digitizer(digitizer.name, image),
    )


def extract(image: ImageDescriptor, sidecar_path: Path) -> ScanMetadata:
    """Resolve rows, cols and digitizer for ``image`` from its sidecar file."""
    metadata = metadata_from_records(image, parse_sidecar(sidecar_path))
    logger.debug("Metadata for %s: %s", image.name, metadata.descriptor)
    return metadata
