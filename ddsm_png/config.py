"""Configuration objects and constants for the converter."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("ddsm_png")

DEFAULT_DECOMPRESSOR = "jpeg"
DEFAULT_RAW_CONVERTER = "ddsmraw2pnm"
DEFAULT_IMAGE_CONVERTER = "convert"
DEFAULT_BIT_DEPTH = 16

SOURCE_SUFFIX = ".LJPEG"
SIDECAR_SUFFIX = ".ics"

ENV_OVERRIDES = {
    "decompressor": "DDSM_JPEG",
    "raw_converter": "DDSM_RAW2PNM",
    "image_converter": "DDSM_CONVERT",
}


@dataclass
class ConvertConfig:
    """Top-level settings that control discovery and conversion behaviour."""

    output_root: Optional[Path] = None
    work_dir: Optional[Path] = None
    decompressor: str = DEFAULT_DECOMPRESSOR
    raw_converter: str = DEFAULT_RAW_CONVERTER
    image_converter: str = DEFAULT_IMAGE_CONVERTER
    bit_depth: int = DEFAULT_BIT_DEPTH
    timeout: Optional[float] = None
    jobs: int = 1


def _resolve_env_override(field_name: str) -> Optional[str]:
    env_var = ENV_OVERRIDES[field_name]
    override = os.getenv(env_var)
    if not override:
        return None
    override_path = Path(override).expanduser()
    if override_path.is_absolute() and not override_path.exists():
        logger.warning(
            "%s is set to %s but the path does not exist; using it anyway",
            env_var,
            override_path,
        )
    logger.debug("%s override detected: %s", env_var, override_path)
    return str(override_path)


def build_config(
    *,
    output_root: Optional[Path] = None,
    work_dir: Optional[Path] = None,
    decompressor: Optional[str] = None,
    raw_converter: Optional[str] = None,
    image_converter: Optional[str] = None,
    timeout: Optional[float] = None,
    jobs: int = 1,
) -> ConvertConfig:
    """Assemble a config where explicit values win over environment overrides."""
    executables = {
        "decompressor": decompressor,
        "raw_converter": raw_converter,
        "image_converter": image_converter,
    }
    resolved = {}
    for field_name, explicit in executables.items():
        if explicit:
            resolved[field_name] = explicit
            continue
        env_value = _resolve_env_override(field_name)
        if env_value:
            resolved[field_name] = env_value

    if jobs < 1:
        raise ValueError(f"jobs must be at least 1 (got {jobs})")
    if timeout is not None and timeout <= 0:
        raise ValueError(f"timeout must be positive (got {timeout})")

    return ConvertConfig(
        output_root=output_root.resolve() if output_root else None,
        work_dir=work_dir.resolve() if work_dir else None,
        timeout=timeout,
        jobs=jobs,
        **resolved,
    )
