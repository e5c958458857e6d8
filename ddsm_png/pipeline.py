"""High-level orchestration for turning compressed scans into PNG files."""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .config import ConvertConfig
from .discovery import find_sidecar
from .errors import ConversionError, StageExitNonZero, StageOutputMissing
from .models import BatchReport, ConversionResult, ImageDescriptor, ScanMetadata
from .runner import run_command
from .sidecar import extract

logger = logging.getLogger("ddsm_png")

STAGE_DECOMPRESS = "decompress"
STAGE_RAW = "raw-to-pnm"
STAGE_PNG = "pnm-to-png"

RAW_SUFFIX = ".1"


def raw_artifact_path(source: Path) -> Path:
    """Where the decompressor leaves its output: ``<source>.1``."""
    return source.with_name(source.name + RAW_SUFFIX)


def _remove(path: Path) -> None:
    try:
        path.unlink()
        logger.debug("Removed %s", path)
    except FileNotFoundError:
        pass


class ConversionPipeline:
    """Runs the decompress, raw-to-PNM and PNM-to-PNG stages for one image."""

    def __init__(self, config: ConvertConfig) -> None:
        self.config = config

    def _stage(self, source: Path, staging_dir: Path) -> Path:
        staged = staging_dir / source.name
        shutil.copy2(source, staged)
        logger.debug("Staged %s as %s", source, staged)
        return staged

    def decompress(self, source: Path) -> Path:
        raw = raw_artifact_path(source)
        _remove(raw)
        run_command(
            [self.config.decompressor, "-d", "-s", source],
            stage=STAGE_DECOMPRESS,
            cwd=source.parent,
            timeout=self.config.timeout,
        )
        if not raw.exists():
            raise StageOutputMissing(
                STAGE_DECOMPRESS, f"decompression failed: {raw} was not created"
            )
        return raw

    def raw_to_pnm(self, raw: Path, metadata: Union[ScanMetadata, str]) -> Path:
        params = metadata.as_args() if isinstance(metadata, ScanMetadata) else metadata.split()
        try:
            result = run_command(
                [self.config.raw_converter, raw, *params],
                stage=STAGE_RAW,
                cwd=raw.parent,
                timeout=self.config.timeout,
            )
        finally:
            # The raw file is consumed whether or not the conversion succeeded.
            _remove(raw)

        if not result.ok:
            raise StageExitNonZero(
                STAGE_RAW,
                f"raw-to-portable conversion failed for {raw} (exit status {result.returncode})",
                returncode=result.returncode,
                stderr=result.stderr,
            )
        token = result.first_token
        if token is None:
            raise StageOutputMissing(
                STAGE_RAW, f"raw-to-portable conversion printed no output path for {raw}"
            )
        pnm = Path(token)
        if not pnm.is_absolute():
            pnm = raw.parent / pnm
        if not pnm.exists():
            raise StageOutputMissing(
                STAGE_RAW, f"raw-to-portable conversion reported {pnm} but it does not exist"
            )
        return pnm

    def pnm_to_png(self, pnm: Path, target: Path) -> Path:
        target.parent.mkdir(parents=True, exist_ok=True)
        _remove(target)
        run_command(
            [self.config.image_converter, "-depth", str(self.config.bit_depth), pnm, target],
            stage=STAGE_PNG,
            cwd=pnm.parent,
            timeout=self.config.timeout,
        )
        if not target.exists():
            raise StageOutputMissing(STAGE_PNG, f"PNM/PNG conversion failed: {target} was not created")
        _remove(pnm)
        return target

    def convert(
        self,
        source: Path,
        metadata: Union[ScanMetadata, str],
        target: Path,
        timings: Optional[Dict[str, float]] = None,
    ) -> Path:
        """Convert ``source`` to ``target``, returning the absolute PNG path.

        Any stage failure raises and leaves earlier deletions in place. With a
        work directory every run gets its own staging directory, removed on exit.
        """
        if timings is None:
            timings = {}
        source = source.resolve()
        target = target.resolve()

        staging_dir: Optional[Path] = None
        if self.config.work_dir:
            self.config.work_dir.mkdir(parents=True, exist_ok=True)
            staging_dir = Path(tempfile.mkdtemp(prefix=f"{source.stem}-", dir=self.config.work_dir))
        try:
            start = time.perf_counter()
            working = self._stage(source, staging_dir) if staging_dir else source
            try:
                raw = self.decompress(working)
            finally:
                if working != source:
                    _remove(working)
            timings[STAGE_DECOMPRESS] = time.perf_counter() - start

            start = time.perf_counter()
            pnm = self.raw_to_pnm(raw, metadata)
            timings[STAGE_RAW] = time.perf_counter() - start

            start = time.perf_counter()
            output = self.pnm_to_png(pnm, target)
            timings[STAGE_PNG] = time.perf_counter() - start
        finally:
            if staging_dir:
                shutil.rmtree(staging_dir, ignore_errors=True)
        return output


def build_target_path(config: ConvertConfig, image: ImageDescriptor) -> Path:
    if image.path is None:
        raise ValueError(f"No source path known for {image.name}")
    directory = config.output_root or image.path.parent
    return directory / f"{image.name}.png"


def describe_image(source: Path) -> ScanMetadata:
    """Look up the sidecar for ``source`` and extract its scan metadata."""
    image = ImageDescriptor.from_path(source)
    return extract(image, find_sidecar(image))


def convert_image(source: Path, config: ConvertConfig) -> ConversionResult:
    """Extract metadata for one scan and run it through the pipeline."""
    overall_start = time.perf_counter()
    source = source.resolve()
    image = ImageDescriptor.from_path(source)
    logger.info("Converting %s", image.name)

    metadata = extract(image, find_sidecar(image))
    target = build_target_path(config, image)
    timings: Dict[str, float] = {}
    output_path = ConversionPipeline(config).convert(source, metadata, target, timings)

    total_elapsed = time.perf_counter() - overall_start
    logger.info("Saved PNG to %s", output_path)
    return ConversionResult(
        source=source,
        output_path=output_path,
        metadata=metadata,
        total_seconds=total_elapsed,
        stage_seconds=timings,
    )


def _convert_or_record(
    source: Path,
    config: ConvertConfig,
    report: BatchReport,
) -> Optional[ConversionResult]:
    try:
        return convert_image(source, config)
    except ConversionError as exc:
        stage = f" [{exc.stage}]" if exc.stage else ""
        logger.error("Failed to convert %s%s: %s", source.name, stage, exc)
        report.failures[source] = str(exc)
    except OSError as exc:
        logger.exception("Unexpected I/O error converting %s", source)
        report.failures[source] = str(exc)
    return None


def _claim_targets(
    sources: List[Path],
    config: ConvertConfig,
    report: BatchReport,
) -> List[Path]:
    """Drop sources whose PNG would overwrite one an earlier source writes."""
    owners: Dict[Path, Path] = {}
    claimed: List[Path] = []
    for source in sources:
        target = build_target_path(config, ImageDescriptor.from_path(source)).resolve()
        first = owners.setdefault(target, source)
        if first != source:
            logger.error("Skipping %s: output %s is already written for %s", source, target, first)
            report.failures[source] = f"output {target} collides with {first}"
            continue
        claimed.append(source)
    return claimed


def run_batch(sources: Sequence[Path], config: ConvertConfig) -> BatchReport:
    """Convert each scan independently; one failure never stops the rest."""
    report = BatchReport()
    unique = _claim_targets(list(dict.fromkeys(Path(s).resolve() for s in sources)), config, report)
    if not unique:
        return report

    if config.jobs <= 1 or len(unique) == 1:
        for source in unique:
            result = _convert_or_record(source, config, report)
            if result:
                report.results.append(result)
        return report

    completed: Dict[Path, ConversionResult] = {}
    with ThreadPoolExecutor(max_workers=config.jobs) as executor:
        future_to_source = {
            executor.submit(_convert_or_record, source, config, report): source
            for source in unique
        }
        for future in as_completed(future_to_source):
            result = future.result()
            if result:
                completed[future_to_source[future]] = result

    ordered: List[ConversionResult] = [completed[s] for s in unique if s in completed]
    report.results.extend(ordered)
    return report
