import json
from pathlib import Path

import pytest

from sched_trace.cli import build_parser, main
from sched_trace.workload_io import load_trace


@pytest.fixture
def workload(tmp_path: Path) -> Path:
    p = tmp_path / "w.json"
    p.write_text(json.dumps([
        {"pid": 1, "arrival_time": 0, "burst_time": 4, "priority": 2},
        {"pid": 2, "arrival_time": 1, "burst_time": 3, "priority": 1},
    ]))
    return p


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_run_prints_chart_and_exports(workload: Path, tmp_path: Path, capsys):
    trace_path = tmp_path / "trace.json"
    csv_path = tmp_path / "results.csv"
    status = main([
        "run", "-w", str(workload), "-a", "fcfs", "--plain",
        "--export", str(trace_path), "--results-csv", str(csv_path),
    ])
    out = capsys.readouterr().out

    assert status == 0
    assert "Algorithm: FCFS" in out
    assert "|=======|" in out
    assert load_trace(trace_path).running_pids() == [1, 1, 1, 1, 2, 2, 2]
    assert csv_path.read_text().splitlines()[2].startswith("2,1,3,1,4,7,3,6,3")


def test_run_uses_scenario_settings(tmp_path: Path, capsys):
    p = tmp_path / "s.json"
    p.write_text(json.dumps({
        "policy": "rr",
        "quantum": 3,
        "processes": [{"pid": 1, "arrival_time": 0, "burst_time": 4}],
    }))
    assert main(["run", "-w", str(p), "--plain"]) == 0
    out = capsys.readouterr().out
    assert "Round Robin" in out
    assert "Quantum: 3" in out


def test_run_reports_invalid_input(tmp_path: Path, capsys):
    p = tmp_path / "w.csv"
    p.write_text("pid,arrival_time,burst_time\n1,0,0\n")
    assert main(["run", "-w", str(p)]) == 2
    assert "Error" in capsys.readouterr().out


def test_run_rejects_fractional_context_switch(workload: Path, capsys):
    assert main(["run", "-w", str(workload), "-c", "0.5"]) == 2
    assert "whole number" in capsys.readouterr().out


def test_compare(workload: Path, capsys):
    assert main(["compare", "-w", str(workload), "-a", "fcfs", "rr", "priority"]) == 0
    assert "FCFS" in capsys.readouterr().out


def test_compare_skips_policy_that_rejects_workload(tmp_path: Path, capsys):
    p = tmp_path / "w.json"
    p.write_text(json.dumps([
        {"pid": 1, "arrival_time": 0, "burst_time": 2, "priority": 0},
        {"pid": 2, "arrival_time": 1, "burst_time": 1, "priority": 1},
    ]))
    assert main(["compare", "-w", str(p), "-a", "fcfs", "priority"]) == 0
    out = capsys.readouterr().out
    assert "Skipping Priority" in out
    assert "FCFS" in out


def test_play_runs_to_completion(workload: Path, capsys):
    assert main(["play", "-w", str(workload), "-a", "srtf", "--speed", "500"]) == 0
    out = capsys.readouterr().out
    assert "Final results" in out
    assert "not completed" not in out
