"""
Shared fixtures: a small DDSM-style case directory and fake external tools.

The fake tools are Python scripts that follow the same command-line
contract as jpeg, ddsmraw2pnm and convert, and append every invocation
to a calls log so tests can assert which stages ran.
"""

import stat
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

from ddsm_png.config import ConvertConfig

ICS_HOWTEK = """\
ics_version 1.0
filename A-1234-1
DATE_OF_STUDY 2 7 1995
PATIENT_AGE 42
FILM
FILM_TYPE REGULAR
DENSITY 4
DATE_DIGITIZED 22 6 1997
DIGITIZER HOWTEK
SELECTED
LEFT_CC LINES 4696 PIXELS_PER_LINE 3024 BITS_PER_PIXEL 12 RESOLUTION 50 OVERLAY
LEFT_MLO LINES 4688 PIXELS_PER_LINE 3048 BITS_PER_PIXEL 12 RESOLUTION 50 OVERLAY
RIGHT_CC LINES 4624 PIXELS_PER_LINE 3056 BITS_PER_PIXEL 12 RESOLUTION 50 NON_OVERLAY
RIGHT_MLO LINES 4664 PIXELS_PER_LINE 3064 BITS_PER_PIXEL 12 RESOLUTION 50 NON_OVERLAY
"""

_TOOL_HEADER = """\
#!{python}
import pathlib
import sys


def log(argv):
    with open({log!r}, "a") as fh:
        fh.write(pathlib.Path(argv[0]).name + " " + " ".join(argv[1:]) + "\\n")


"""

JPEG_OK = """
log(sys.argv)
source = pathlib.Path(sys.argv[-1])
pathlib.Path(str(source) + ".1").write_bytes(b"raw-pixels")
"""

JPEG_NO_OUTPUT = """
log(sys.argv)
"""

RAW_OK = """
log(sys.argv)
raw = pathlib.Path(sys.argv[1])
pnm = raw.with_name(raw.name + "-ddsmraw2pnm.pnm")
pnm.write_bytes(b"P5 pixels")
print(pnm.name)
"""

RAW_FAIL = """
log(sys.argv)
sys.stderr.write("unknown digitizer\\n")
sys.exit(3)
"""

RAW_SILENT = """
log(sys.argv)
"""

CONVERT_OK = """
import shutil

log(sys.argv)
shutil.copyfile(sys.argv[-2], sys.argv[-1])
"""

CONVERT_NO_OUTPUT = """
log(sys.argv)
"""

JPEG_COPY = """
import time

log(sys.argv)
time.sleep(0.3)
source = pathlib.Path(sys.argv[-1])
pathlib.Path(str(source) + ".1").write_bytes(source.read_bytes())
"""

RAW_COPY = """
log(sys.argv)
raw = pathlib.Path(sys.argv[1])
pnm = raw.with_name(raw.name + "-ddsmraw2pnm.pnm")
pnm.write_bytes(raw.read_bytes())
print(pnm.name)
"""

SLEEPER = """
import time

log(sys.argv)
time.sleep(10)
"""


@dataclass
class FakeTools:
    bin_dir: Path
    calls_log: Path

    def write(self, name: str, body: str) -> str:
        path = self.bin_dir / name
        header = _TOOL_HEADER.format(python=sys.executable, log=str(self.calls_log))
        path.write_text(header + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    def calls(self) -> list:
        if not self.calls_log.exists():
            return []
        return [line.split()[0] for line in self.calls_log.read_text().splitlines()]

    def call_lines(self) -> list:
        if not self.calls_log.exists():
            return []
        return self.calls_log.read_text().splitlines()


@pytest.fixture
def tools(tmp_path):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    fake = FakeTools(bin_dir=bin_dir, calls_log=tmp_path / "calls.log")
    fake.write("jpeg", JPEG_OK)
    fake.write("ddsmraw2pnm", RAW_OK)
    fake.write("convert", CONVERT_OK)
    return fake


@pytest.fixture
def config(tools):
    return ConvertConfig(
        decompressor=str(tools.bin_dir / "jpeg"),
        raw_converter=str(tools.bin_dir / "ddsmraw2pnm"),
        image_converter=str(tools.bin_dir / "convert"),
    )


@pytest.fixture
def case_dir(tmp_path):
    """A case directory holding one .ics file and two compressed scans."""
    case = tmp_path / "data" / "cases" / "benigns" / "benign_01" / "case1234"
    case.mkdir(parents=True)
    (case / "A-1234-1.ics").write_text(ICS_HOWTEK)
    (case / "A_1234_1.LEFT_CC.LJPEG").write_bytes(b"ljpeg-left-cc")
    (case / "A_1234_1.RIGHT_MLO.LJPEG").write_bytes(b"ljpeg-right-mlo")
    return case
