"""MCP server exposing ddsm-png describe/convert tools."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from mcp.server.fastmcp import FastMCP

from .config import build_config
from .discovery import find_images
from .pipeline import describe_image, run_batch

logger = logging.getLogger("ddsm_png.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="ddsm-png")


def _locate(name: str, root: str) -> List[Path]:
    search_root = Path(root).expanduser()
    sources = find_images([name], search_root)
    if not sources:
        raise FileNotFoundError(f"No scans matching {name} under {search_root}")
    return sources


@mcp.tool()
def describe(
    name: str,
    root: str = ".",
) -> str:
    """Return "<rows> <cols> <digitizer>" for each scan matching ``name``."""

    lines = []
    for source in _locate(name, root):
        metadata = describe_image(source)
        lines.append(f"{source.name}: {metadata.descriptor}")
    return "\n".join(lines)


@mcp.tool()
def convert(
    name: str,
    root: str = ".",
    output: Optional[str] = None,
) -> str:
    """Convert scans matching ``name`` to 16-bit PNG and return their paths."""

    config = build_config(
        output_root=Path(output).expanduser() if output else None,
    )
    report = run_batch(_locate(name, root), config)
    if not report.results:
        failures = "; ".join(f"{path.name}: {msg}" for path, msg in report.failures.items())
        raise RuntimeError(f"Failed to convert {name}: {failures}")
    lines = [str(result.output_path) for result in report.results]
    lines.extend(f"FAILED {path.name}: {msg}" for path, msg in report.failures.items())
    return "\n".join(lines)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
