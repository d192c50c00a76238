import json
from pathlib import Path

import pytest

from sched_trace.algorithms import generate
from sched_trace.metrics import evaluate
from sched_trace.models import ProcessSpec, StepKind
from sched_trace.workload_io import (
    load_scenario,
    load_trace,
    load_workload,
    save_results,
    save_trace,
    trace_to_dict,
)


def test_load_json(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_text('[{"pid":1,"arrival_time":0,"burst_time":3,"priority":1},'
                 '{"pid":2,"arrival_time":1,"burst_time":2}]')
    procs = load_workload(p)
    assert isinstance(procs[0], ProcessSpec)
    assert procs[1].priority is None
    assert procs[1].arrival_time == 1


def test_load_json_camel_case_keys(tmp_path: Path):
    p = tmp_path / "w.json"
    p.write_text('[{"pid":"P3","arrivalTime":"2","burstTime":4,"priority":2}]')
    assert load_workload(p) == [ProcessSpec(3, arrival_time=2, burst_time=4, priority=2)]


def test_load_scenario_settings(tmp_path: Path):
    p = tmp_path / "s.json"
    p.write_text(json.dumps({
        "policy": "rr",
        "timeQuantum": 3,
        "contextSwitchTime": 1,
        "processes": [{"pid": 1, "arrival_time": 0, "burst_time": 5}],
    }))
    settings, procs = load_scenario(p)
    assert settings == {"policy": "rr", "quantum": 3, "context_switch_time": 1}
    assert len(procs) == 1


def test_load_csv(tmp_path: Path):
    p = tmp_path / "w.csv"
    p.write_text("pid,arrival_time,burst_time,priority\n1,0,3,1\n2,1,2,\n")
    procs = load_workload(p)
    assert procs[0].pid == 1
    assert procs[1].priority is None


@pytest.mark.parametrize(
    "content",
    [
        '[{"pid":1,"arrival_time":0}]',
        '[{"pid":1,"arrival_time":0.5,"burst_time":2}]',
        '[{"pid":1,"arrival_time":0,"burst_time":2},{"pid":1,"arrival_time":1,"burst_time":2}]',
        '{"policy":"fcfs"}',
    ],
)
def test_load_json_rejects_bad_entries(tmp_path: Path, content):
    p = tmp_path / "w.json"
    p.write_text(content)
    with pytest.raises(ValueError):
        load_workload(p)


def test_unsupported_suffix(tmp_path: Path):
    p = tmp_path / "w.yaml"
    p.write_text("")
    with pytest.raises(ValueError):
        load_workload(p)


def test_trace_file_round_trip(tmp_path: Path):
    procs = [
        ProcessSpec(1, arrival_time=0, burst_time=3, priority=2),
        ProcessSpec(2, arrival_time=4, burst_time=2, priority=1),
    ]
    trace = generate("rr", procs, quantum=2, context_switch_time=1)
    path = save_trace(trace, tmp_path / "trace.json")

    data = json.loads(path.read_text())
    assert data["version"] == 1
    assert data["steps"][0] == {"time": 0, "kind": "running", "pid": 1, "arrivals": [1]}

    loaded = load_trace(path)
    assert loaded == trace
    assert loaded.count(StepKind.IDLE) == 1


def test_trace_with_unknown_version_rejected(tmp_path: Path):
    data = trace_to_dict(generate("fcfs", [ProcessSpec(1, arrival_time=0, burst_time=1)]))
    data["version"] = 99
    p = tmp_path / "trace.json"
    p.write_text(json.dumps(data))
    with pytest.raises(ValueError):
        load_trace(p)


def test_save_results_writes_blank_for_unavailable(tmp_path: Path):
    result = evaluate(generate("fcfs", [ProcessSpec(1, arrival_time=0, burst_time=2)]))
    path = save_results(result.results, tmp_path / "results.csv")
    lines = path.read_text().splitlines()
    assert lines[0].startswith("pid,arrival_time,burst_time,priority")
    assert lines[1] == "1,0,2,,0,2,0,2,0"


def _two_unit_trace_dict():
    return trace_to_dict(generate("fcfs", [ProcessSpec(1, arrival_time=0, burst_time=2)]))


def test_trace_running_unknown_pid_rejected(tmp_path: Path):
    data = _two_unit_trace_dict()
    data["steps"][1]["pid"] = 7
    p = tmp_path / "trace.json"
    p.write_text(json.dumps(data))
    with pytest.raises(ValueError, match="unknown pids"):
        load_trace(p)


def test_trace_breaking_burst_conservation_rejected(tmp_path: Path):
    data = _two_unit_trace_dict()
    data["steps"].append({"time": 2, "kind": "running", "pid": 1, "arrivals": []})
    p = tmp_path / "trace.json"
    p.write_text(json.dumps(data))
    with pytest.raises(ValueError, match="burst time"):
        load_trace(p)


def test_trace_with_invalid_processes_rejected(tmp_path: Path):
    data = _two_unit_trace_dict()
    data["policy"] = "priority"
    p = tmp_path / "trace.json"
    p.write_text(json.dumps(data))
    with pytest.raises(ValueError, match="priority"):
        load_trace(p)
