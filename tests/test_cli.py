import pytest

from ddsm_png import cli

from conftest import RAW_FAIL


@pytest.fixture
def tool_args(tools):
    return [
        "--jpeg",
        str(tools.bin_dir / "jpeg"),
        "--ddsmraw2pnm",
        str(tools.bin_dir / "ddsmraw2pnm"),
        "--convert",
        str(tools.bin_dir / "convert"),
    ]


def test_convert_prints_png_paths(case_dir, tmp_path, tool_args, capsys):
    out_dir = tmp_path / "png"
    code = cli.main(
        ["convert", "A_1234_1.*", "--root", str(tmp_path / "data"), "--output", str(out_dir), *tool_args]
    )
    assert code == 0
    printed = capsys.readouterr().out.splitlines()
    assert printed == [
        str((out_dir / "A_1234_1.LEFT_CC.png").resolve()),
        str((out_dir / "A_1234_1.RIGHT_MLO.png").resolve()),
    ]


def test_convert_is_the_default_command(case_dir, tmp_path, tool_args, capsys):
    code = cli.main(["A_1234_1.LEFT_CC", "--root", str(tmp_path / "data"), *tool_args])
    assert code == 0
    assert capsys.readouterr().out.strip().endswith("A_1234_1.LEFT_CC.png")


def test_partial_failure_sets_exit_status(case_dir, tmp_path, tool_args, capsys):
    (case_dir / "A_1234_1.LEFT_XCCL.LJPEG").write_bytes(b"ljpeg")
    code = cli.main(["A_1234_1.*", "--root", str(tmp_path / "data"), *tool_args])
    assert code == 1
    printed = capsys.readouterr().out.splitlines()
    assert len(printed) == 2


def test_stage_failure_sets_exit_status(case_dir, tmp_path, tools, capsys):
    broken = tools.write("raw-broken", RAW_FAIL)
    code = cli.main(
        [
            "A_1234_1.LEFT_CC",
            "--root",
            str(tmp_path / "data"),
            "--jpeg",
            str(tools.bin_dir / "jpeg"),
            "--ddsmraw2pnm",
            broken,
            "--convert",
            str(tools.bin_dir / "convert"),
        ]
    )
    assert code == 1
    assert capsys.readouterr().out == ""


def test_no_matches(case_dir, tmp_path, tool_args):
    assert cli.main(["Z_9999_9.*", "--root", str(tmp_path / "data"), *tool_args]) == 1


def test_invalid_jobs(case_dir, tmp_path, tool_args):
    assert cli.main(["convert", "--root", str(tmp_path / "data"), "--jobs", "0"]) == 2


def test_describe(case_dir, tmp_path, capsys):
    code = cli.main(["describe", "*.LEFT_CC", "--root", str(tmp_path / "data")])
    assert code == 0
    path, descriptor = capsys.readouterr().out.strip().split("\t")
    assert path.endswith("A_1234_1.LEFT_CC.LJPEG")
    assert descriptor == "4696 3024 howtek-mgh"


def test_describe_reports_failures(case_dir, tmp_path, capsys):
    (case_dir / "A-1234-1.ics").write_text("LEFT_CC LINES 1 PIXELS_PER_LINE 2\n")
    code = cli.main(["describe", "--root", str(tmp_path / "data")])
    assert code == 1
    assert capsys.readouterr().out == ""
