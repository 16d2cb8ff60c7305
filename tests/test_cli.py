from __future__ import annotations

import csv
from pathlib import Path

import pytest

from sensefuse.cli import EXIT_INPUT_ERROR, EXIT_OK, EXIT_PERMISSION_DENIED, main
from sensefuse.core.models import FUSED_COLUMNS, LocationSnapshot, MotionSample
from sensefuse.core.session import PERMISSION_DENIED_TITLE
from sensefuse.sources import format_event


def _write_recording(path: Path, count: int) -> Path:
    lines = [format_event("location", LocationSnapshot.from_fix(52.1, 4.3, 0, accuracy=4.5))]
    for i in range(count):
        lines.append(format_event("accel", MotionSample(0.0, 0.0, 1.0, timestamp=i * 10.0)))
        lines.append(format_event("gyro", MotionSample(0.1, 0.0, -0.1, timestamp=i * 10.0 + 5)))
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_replay_writes_fused_table(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    recording = _write_recording(tmp_path / "run.jsonl", 130)
    out_dir = tmp_path / "out"

    code = main(["--log-level", "WARNING", "replay", str(recording), "--out", str(out_dir)])

    assert code == EXIT_OK
    with (out_dir / "data.csv").open(newline="", encoding="utf-8") as fh:
        rows = list(csv.DictReader(fh))
    # one threshold flush of 100 plus the teardown flush of 30
    assert len(rows) == 130
    assert tuple(rows[0]) == FUSED_COLUMNS
    assert "flushes=2 records=130" in capsys.readouterr().out


def test_replay_uses_table_name_from_config(tmp_path: Path) -> None:
    recording = _write_recording(tmp_path / "run.jsonl", 10)
    cfg = tmp_path / "fusion.yaml"
    cfg.write_text("fusion:\n  table_name: rides\n  flush_threshold: 5\n", encoding="utf-8")

    code = main(["--config", str(cfg), "replay", str(recording), "--out", str(tmp_path), "--format", "jsonl"])

    assert code == EXIT_OK
    assert len((tmp_path / "rides.jsonl").read_text(encoding="utf-8").splitlines()) == 10


def test_missing_recording_is_an_input_error(tmp_path: Path) -> None:
    code = main(["replay", str(tmp_path / "missing.jsonl"), "--out", str(tmp_path / "out")])

    assert code == EXIT_INPUT_ERROR
    assert not (tmp_path / "out").exists()


def test_simulate_with_denied_permission(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = main(["simulate", "--seconds", "0.1", "--out", str(tmp_path), "--deny-permission"])

    assert code == EXIT_PERMISSION_DENIED
    assert PERMISSION_DENIED_TITLE in capsys.readouterr().err
    assert list(tmp_path.iterdir()) == []


def test_simulate_records_replayable_log(tmp_path: Path) -> None:
    record = tmp_path / "raw.jsonl"

    code = main(
        [
            "simulate",
            "--seconds",
            "0.3",
            "--out",
            str(tmp_path / "out"),
            "--hz",
            "100",
            "--record",
            str(record),
            "--seed",
            "7",
        ]
    )

    assert code == EXIT_OK
    lines = record.read_text(encoding="utf-8").splitlines()
    assert any('"stream": "location"' in line for line in lines)
    assert any('"stream": "accel"' in line for line in lines)
