import json
import os
import subprocess
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

from dstat_plot.main import _args_to_params, _build_cli_parser, _expand_bare_invert, main
from dstat_plot.smoothing import InvalidTransformConfigError, SmoothingAlgorithm
from dstat_plot.utils import discover_input_files

HEADER = [",cpu,cpu", ",usr,sys"]
DATA = ["0,10,5", "1,20,6", "2,15,7"]


def make_csv(path: Path, lines=None) -> Path:
    path.write_text("\n".join((lines or HEADER + DATA)) + "\n", encoding="utf-8")
    return path


def _args(**overrides):
    base = {
        "paths": [],
        "category": None,
        "field": None,
        "column": None,
        "invert": None,
        "group_size": None,
        "smoothing": None,
        "no_key": False,
        "dry": False,
        "output": None,
        "y_max": None,
        "title": None,
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def test_parser_reads_every_option(tmp_path: Path):
    parser = _build_cli_parser()
    args = parser.parse_intermixed_args(
        [
            str(tmp_path / "a.csv"),
            "-c",
            "cpu",
            "-f",
            "sys",
            "-i",
            "50",
            "-a",
            "4",
            "-s",
            "bezier",
            "-n",
            "-d",
            "-y",
            "80",
            "-t",
            "T",
            "-o",
            "out.png",
            str(tmp_path / "b.csv"),
        ]
    )
    assert args.paths == [str(tmp_path / "a.csv"), str(tmp_path / "b.csv")]
    assert args.invert == 50.0
    assert args.group_size == 4
    assert args.smoothing == "bezier"
    assert args.no_key and args.dry
    assert args.y_max == 80.0


def test_bare_invert_uses_default_pivot():
    args = _build_cli_parser().parse_intermixed_args(["-l", "2", "-i"])
    assert args.invert == 100.0


def test_args_to_params_prefers_category_and_field(tmp_path: Path):
    f = make_csv(tmp_path / "a.csv")
    load, trans, plot = _args_to_params(
        _args(paths=[str(f)], category="cpu", field="sys", column=3, smoothing="csplines")
    )

    assert load.column.category == "cpu" and load.column.field == "sys"
    assert load.files == [f]
    assert load.target_dir == tmp_path
    assert trans.smoothing is SmoothingAlgorithm.CSPLINES
    assert plot.show_legend is True
    assert plot.output is None


def test_args_to_params_requires_selector():
    with pytest.raises(ValueError) as excinfo:
        _args_to_params(_args(category="cpu"))
    assert "mandatory" in str(excinfo.value)

    with pytest.raises(ValueError) as excinfo_neg:
        _args_to_params(_args(column=-1))
    assert "non-negative" in str(excinfo_neg.value)


def test_args_to_params_rejects_bad_group_size():
    with pytest.raises(InvalidTransformConfigError):
        _args_to_params(_args(column=1, group_size=0))


def test_discover_directory_sorted(tmp_path: Path):
    for name in ("b.csv", "a.csv", "c.csv"):
        make_csv(tmp_path / name)
    (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

    files, target = discover_input_files([str(tmp_path)])
    assert [f.name for f in files] == ["a.csv", "b.csv", "c.csv"]
    assert target == tmp_path


def test_discover_explicit_files_keep_order(tmp_path: Path):
    b = make_csv(tmp_path / "b.csv")
    a = make_csv(tmp_path / "a.csv")
    files, target = discover_input_files([b, a])
    assert files == [b, a]
    assert target == tmp_path


def test_main_writes_generated_filename(tmp_path: Path):
    make_csv(tmp_path / "run1.csv")
    make_csv(tmp_path / "run2.csv")

    main(["-c", "cpu", "-f", "sys", str(tmp_path)])

    assert (tmp_path / "cpu-sys.png").exists()


def test_main_output_directory_and_column(tmp_path: Path):
    make_csv(tmp_path / "run1.csv")
    out_dir = tmp_path / "plots"
    out_dir.mkdir()

    main(["-l", "2", "-o", str(out_dir), str(tmp_path / "run1.csv")])

    assert (out_dir / "column-2.png").exists()


def test_main_dry_run_writes_nothing(tmp_path: Path):
    make_csv(tmp_path / "run1.csv")
    main(["-c", "cpu", "-f", "usr", "-d", str(tmp_path)])
    assert not (tmp_path / "cpu-usr.png").exists()


def test_main_unknown_field_prints_allowed(tmp_path: Path, capsys):
    make_csv(tmp_path / "run1.csv")

    with pytest.raises(SystemExit) as excinfo:
        main(["-c", "cpu", "-f", "iowait", str(tmp_path)])

    assert excinfo.value.code == 2
    err = capsys.readouterr().err
    assert "'iowait' is not a valid parameter for 'field'" in err
    assert "Allowed fields: ['usr', 'sys']" in err


def test_main_unknown_category_prints_allowed(tmp_path: Path, capsys):
    make_csv(tmp_path / "run1.csv")

    with pytest.raises(SystemExit) as excinfo:
        main(["-c", "disk", "-f", "read", str(tmp_path)])

    assert excinfo.value.code == 2
    err = capsys.readouterr().err
    assert "'disk' is not a valid parameter for 'category'" in err
    assert "Allowed categories: ['cpu']" in err


def test_bare_invert_before_directory(tmp_path: Path):
    make_csv(tmp_path / "run1.csv")

    main(["-c", "cpu", "-f", "usr", "-i", str(tmp_path)])

    assert (tmp_path / "cpu-usr.png").exists()


def test_bare_invert_before_file_keeps_path():
    args = _build_cli_parser().parse_intermixed_args(
        _expand_bare_invert(["-l", "1", "-i", "logs/a.csv"])
    )
    assert args.invert == 100.0
    assert args.paths == ["logs/a.csv"]


def test_invert_value_still_read_after_flag():
    assert _expand_bare_invert(["-i", "50", "x.csv"]) == ["-i", "50", "x.csv"]
    assert _expand_bare_invert(["--invert", "-5"]) == ["--invert", "-5"]
    assert _expand_bare_invert(["-i", "-n", "x.csv"]) == ["-i", "-n", "x.csv"]
    assert _expand_bare_invert(["--", "-i", "x"]) == ["--", "-i", "x"]


def test_main_missing_selector_is_usage_error(tmp_path: Path, capsys):
    make_csv(tmp_path / "run1.csv")
    with pytest.raises(SystemExit) as excinfo:
        main([str(tmp_path)])
    assert excinfo.value.code == 2
    assert "mandatory" in capsys.readouterr().err


def test_main_invalid_smoothing_is_usage_error(tmp_path: Path):
    make_csv(tmp_path / "run1.csv")
    with pytest.raises(SystemExit) as excinfo:
        main(["-l", "1", "-s", "wobble", str(tmp_path)])
    assert excinfo.value.code == 2


def test_main_empty_directory_is_no_data(tmp_path: Path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["-l", "1", str(tmp_path)])
    assert excinfo.value.code == 2
    assert "No input files" in capsys.readouterr().err


def test_main_malformed_csv(tmp_path: Path, capsys):
    make_csv(tmp_path / "run1.csv", HEADER + ["0,10,5", "1,20"])
    with pytest.raises(SystemExit) as excinfo:
        main(["-l", "1", str(tmp_path)])
    assert excinfo.value.code == 2
    assert "malformed" in capsys.readouterr().err


def test_print_defaults(capsys):
    main(["--print-defaults"])
    payload = json.loads(capsys.readouterr().out)
    assert payload["PlotParams"]["y_default"] == 105.0
    assert "kdensity" in payload["TransformParams"]["smoothing_choices"]


def test_import_leaves_root_logger_unconfigured():
    src = Path(__file__).resolve().parents[1] / "src"
    env = dict(os.environ, PYTHONPATH=str(src))
    code = "import logging, dstat_plot; print(len(logging.getLogger().handlers))"

    out = subprocess.run(
        [sys.executable, "-c", code], env=env, capture_output=True, text=True, check=True
    )
    assert out.stdout.strip() == "0"
