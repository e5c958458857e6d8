"""Locate compressed scans and their sidecar files on disk."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, List, Sequence

from .config import SIDECAR_SUFFIX, SOURCE_SUFFIX
from .errors import SidecarNotFound
from .models import ImageDescriptor

logger = logging.getLogger("ddsm_png")


def _is_source(path: Path) -> bool:
    return path.suffix.upper() == SOURCE_SUFFIX.upper()


def _matches(image: ImageDescriptor, patterns: Sequence[str]) -> bool:
    if not patterns:
        return True
    candidates = (image.name, image.path.name if image.path else image.name)
    return any(
        fnmatch.fnmatchcase(candidate.upper(), pattern.upper())
        for pattern in patterns
        for candidate in candidates
    )


def iter_sources(root: Path) -> Iterable[Path]:
    """Yield every compressed scan under ``root`` in a stable order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if _is_source(path):
                yield path


def find_images(patterns: Sequence[str], root: Path) -> List[Path]:
    """Return scans under ``root`` whose name matches any of ``patterns``.

    Patterns are shell-style globs compared case-insensitively against the
    image name (``A_1234_1.LEFT_CC``) and the file name. No patterns means
    every scan in the tree.
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Search root does not exist: {root}")
    found = [
        path.resolve()
        for path in iter_sources(root)
        if _matches(ImageDescriptor.from_path(path), patterns)
    ]
    logger.debug("Found %d image(s) under %s", len(found), root)
    return found


def _case_key(value: str) -> str:
    return value.replace("-", "_").upper()


def find_sidecar(image: ImageDescriptor) -> Path:
    """Return the sidecar file that describes ``image``.

    The sidecar lives in the image's directory. When several are present
    the one whose stem matches the case prefix of the image name wins,
    e.g. ``A-1234-1.ics`` for ``A_1234_1.LEFT_CC``.
    """
    if image.path is None:
        raise SidecarNotFound(f"No source path known for {image.name}")
    directory = image.path.parent
    sidecars = sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() == SIDECAR_SUFFIX
    )
    if not sidecars:
        raise SidecarNotFound(f"No {SIDECAR_SUFFIX} file found next to {image.path}")
    if len(sidecars) == 1:
        return sidecars[0]

    case = _case_key(image.name.split(".", 1)[0])
    for sidecar in sidecars:
        if _case_key(sidecar.stem) == case:
            return sidecar
    raise SidecarNotFound(
        f"Ambiguous sidecar for {image.name}: "
        + ", ".join(p.name for p in sidecars)
    )
