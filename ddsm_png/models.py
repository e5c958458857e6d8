"""Data models used throughout the conversion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .config import SOURCE_SUFFIX


@dataclass(frozen=True)
class ImageDescriptor:
    """Identifies one scan image by its dotted name, e.g. ``A_1234_1.LEFT_CC``."""

    name: str
    path: Optional[Path] = None

    @classmethod
    def from_path(cls, path: Path) -> "ImageDescriptor":
        name = path.name
        if name.upper().endswith(SOURCE_SUFFIX.upper()):
            name = name[: -len(SOURCE_SUFFIX)]
        return cls(name=name, path=path)

    @property
    def view_token(self) -> str:
        """Anatomical view after the last separator (``LEFT_CC``)."""
        return self.name.rsplit(".", 1)[-1]

    @property
    def case_prefix(self) -> str:
        return self.name[:1].upper()


@dataclass(frozen=True)
class ScanMetadata:
    """Resolved dimensions and digitizer for one image."""

    rows: int
    cols: int
    digitizer: str

    @property
    def descriptor(self) -> str:
        return f"{self.rows} {self.cols} {self.digitizer}"

    def as_args(self) -> List[str]:
        return [str(self.rows), str(self.cols), self.digitizer]


@dataclass(frozen=True)
class ViewRecord:
    """A sidecar line declaring one view's dimensions.

    ``labels`` holds the fields that precede the ``LINES`` keyword.
    """

    labels: Tuple[str, ...]
    rows: int
    cols: int
    line_number: int


@dataclass(frozen=True)
class DigitizerRecord:
    """A sidecar line naming the digitizer used for the whole case."""

    name: str
    line_number: int


SidecarRecord = Union[ViewRecord, DigitizerRecord]


@dataclass
class ConversionResult:
    """Timing details and output for a converted image."""

    source: Path
    output_path: Path
    metadata: ScanMetadata
    total_seconds: float
    stage_seconds: Dict[str, float] = field(default_factory=dict)


@dataclass
class BatchReport:
    """Outcome of converting a batch of discovered images."""

    results: List[ConversionResult] = field(default_factory=list)
    failures: Dict[Path, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures
