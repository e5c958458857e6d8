"""Exceptions raised while extracting metadata or running conversion stages."""

from __future__ import annotations

from typing import Optional


class ConversionError(RuntimeError):
    """Base class for failures that abort a single image."""

    stage: Optional[str] = None


class MetadataIncomplete(ConversionError):
    stage = "metadata"


class SidecarNotFound(MetadataIncomplete):
    pass


class DigitizerVariantUndetermined(ConversionError):
    stage = "metadata"


class StageError(ConversionError):
    """A pipeline stage failed; ``stage`` names which one."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage


class StageOutputMissing(StageError):
    pass


class StageExitNonZero(StageError):
    def __init__(self, stage: str, message: str, returncode: int, stderr: str = "") -> None:
        super().__init__(stage, message)
        self.returncode = returncode
        self.stderr = stderr


class StageTimeout(StageError):
    pass


class ExecutableNotFound(StageError):
    pass
