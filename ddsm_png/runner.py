"""Thin wrapper around external conversion programs."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .errors import ExecutableNotFound, StageTimeout

logger = logging.getLogger("ddsm_png")


@dataclass
class CommandResult:
    """Captured outcome of one external program invocation."""

    args: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def first_token(self) -> Optional[str]:
        tokens = self.stdout.split()
        return tokens[0] if tokens else None


def run_command(
    args: Sequence[str],
    *,
    stage: str,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> CommandResult:
    """Run ``args`` to completion and capture stdout, stderr and exit status.

    A non-zero exit status is returned, not raised; callers decide which
    signal counts as success for their stage.
    """
    command = [str(arg) for arg in args]
    logger.debug("[%s] running: %s", stage, " ".join(command))
    try:
        completed = subprocess.run(
            command,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ExecutableNotFound(stage, f"{stage}: executable not found: {command[0]}") from exc
    except PermissionError as exc:
        raise ExecutableNotFound(stage, f"{stage}: executable not runnable: {command[0]}") from exc
    except subprocess.TimeoutExpired as exc:
        raise StageTimeout(stage, f"{stage}: {command[0]} timed out after {timeout}s") from exc

    result = CommandResult(
        args=command,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    if not result.ok:
        logger.warning(
            "[%s] %s exited with status %d: %s",
            stage,
            command[0],
            result.returncode,
            result.stderr.strip(),
        )
    elif result.stderr.strip():
        logger.debug("[%s] stderr: %s", stage, result.stderr.strip())
    return result
