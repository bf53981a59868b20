#!/usr/bin/env python3
"""Tests for the output presence check."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import assert_outputs
from lp_outputs import OUTPUT_FILES, missing_outputs


def test_missing_paths_are_sorted(tmp_path, capsys) -> None:
    (tmp_path / "shortlist.json").write_text("{}\n")

    missing = missing_outputs(tmp_path)
    assert missing == sorted(missing)
    assert str(tmp_path / "shortlist.json") not in missing
    assert len(missing) == len(OUTPUT_FILES) - 1

    assert assert_outputs.run(tmp_path) == 1
    err = capsys.readouterr().err
    assert str(tmp_path / "alerts.json") in err


def test_all_present(tmp_path, capsys) -> None:
    for name in OUTPUT_FILES:
        (tmp_path / name).write_text("{}\n")
    assert assert_outputs.run(tmp_path) == 0
    assert "OK" in capsys.readouterr().out
