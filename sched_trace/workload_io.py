from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from .algorithms import parse_policy, validate_processes
from .models import TRACE_FORMAT_VERSION, ProcessSpec, ResultRecord, Step, StepKind, Trace

# Scenario keys that configure the run rather than describe a process.
SCENARIO_KEYS = ("policy", "quantum", "context_switch_time", "speed")

_ALIASES = {
    "arrivalTime": "arrival_time",
    "burstTime": "burst_time",
    "timeQuantum": "quantum",
    "contextSwitchTime": "context_switch_time",
}


def _normalize_keys(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    return {_ALIASES.get(str(k).strip(), str(k).strip()): v for k, v in mapping.items()}


def load_scenario(path: str | Path) -> Tuple[Dict[str, Any], List[ProcessSpec]]:
    """
    Load a workload file and any run settings it carries.

    A JSON file may be a plain list of processes or an object with a
    ``processes`` list next to ``policy``/``quantum``/``context_switch_time``/
    ``speed``. CSV files only ever hold processes.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".json":
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        settings: Dict[str, Any] = {}
        if isinstance(raw, dict):
            raw = _normalize_keys(raw)
            settings = {k: raw[k] for k in SCENARIO_KEYS if raw.get(k) is not None}
            raw = raw.get("processes")
        if not isinstance(raw, list):
            raise ValueError("JSON workload must be a list of process objects or contain a 'processes' list")
        return settings, _processes_from_mappings(raw)

    if suffix == ".csv":
        with path.open("r", encoding="utf-8", newline="") as f:
            return {}, _processes_from_mappings(csv.DictReader(f))

    raise ValueError(f"Unsupported workload format: {suffix} (use .json or .csv)")


def load_workload(path: str | Path) -> List[ProcessSpec]:
    """
    Load a workload from a JSON or CSV file into a list of ProcessSpec objects.
    """
    _, processes = load_scenario(path)
    return processes


def _processes_from_mappings(entries: Iterable[Mapping[str, Any]]) -> List[ProcessSpec]:
    processes: List[ProcessSpec] = []
    seen = set()
    for entry in entries:
        spec = _process_from_mapping(entry)
        if spec.pid in seen:
            raise ValueError(f"Duplicate pid {spec.pid} in workload")
        seen.add(spec.pid)
        processes.append(spec)
    return processes


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"not an integer: {value!r}")
        return int(value)
    return int(str(value).strip())


def _process_from_mapping(mapping) -> ProcessSpec:
    try:
        mapping = _normalize_keys(mapping)
        pid_raw = str(mapping["pid"]).strip()
        if pid_raw[:1] in ("P", "p"):
            pid_raw = pid_raw[1:]
        pid = _to_int(pid_raw)
        arrival_time = _to_int(mapping["arrival_time"])
        burst_time = _to_int(mapping["burst_time"])
        priority_val = mapping.get("priority")
        priority = _to_int(priority_val) if priority_val not in (None, "") else None
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid process entry: {mapping!r}") from exc

    return ProcessSpec(
        pid=pid,
        arrival_time=arrival_time,
        burst_time=burst_time,
        priority=priority,
    )


def trace_to_dict(trace: Trace) -> Dict[str, Any]:
    return {
        "version": trace.version,
        "policy": trace.policy.value,
        "quantum": trace.quantum,
        "context_switch_time": trace.context_switch_time,
        "processes": [
            {
                "pid": p.pid,
                "arrival_time": p.arrival_time,
                "burst_time": p.burst_time,
                "priority": p.priority,
            }
            for p in trace.processes
        ],
        "steps": [
            {
                "time": s.time,
                "kind": s.kind.value,
                "pid": s.pid,
                "arrivals": sorted(s.arrivals),
            }
            for s in trace.steps
        ],
    }


def trace_from_dict(data: Mapping[str, Any]) -> Trace:
    version = data.get("version")
    if version != TRACE_FORMAT_VERSION:
        raise ValueError(f"Unsupported trace format version: {version!r} (expected {TRACE_FORMAT_VERSION})")

    try:
        processes = tuple(_processes_from_mappings(data["processes"]))
        steps = tuple(
            Step(
                time=int(s["time"]),
                kind=StepKind(s["kind"]),
                pid=None if s.get("pid") is None else int(s["pid"]),
                arrivals=frozenset(int(a) for a in s.get("arrivals", ())),
            )
            for s in data["steps"]
        )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed trace: {exc}") from exc

    if not steps:
        raise ValueError("Malformed trace: no steps")
    for index, step in enumerate(steps):
        if step.time != index:
            raise ValueError(f"Malformed trace: step {index} has time {step.time}")
        if (step.kind is StepKind.RUNNING) != (step.pid is not None):
            raise ValueError(f"Malformed trace: step {index} kind/pid mismatch")

    policy = parse_policy(data.get("policy"))
    validate_processes(processes, policy)

    trace = Trace(
        policy=policy,
        steps=steps,
        processes=processes,
        quantum=data.get("quantum"),
        context_switch_time=int(data.get("context_switch_time") or 0),
        version=version,
    )

    known = {p.pid for p in processes}
    unknown = sorted({s.pid for s in steps if s.pid is not None} - known)
    if unknown:
        raise ValueError(f"Malformed trace: steps run unknown pids {unknown}")
    for p in processes:
        units = trace.units_for(p.pid)
        if units != p.burst_time:
            raise ValueError(f"Malformed trace: P{p.pid} runs {units} units but its burst time is {p.burst_time}")

    return trace


def save_trace(trace: Trace, path: str | Path) -> Path:
    path = Path(path)
    with path.open("w", encoding="utf-8") as f:
        json.dump(trace_to_dict(trace), f, indent=2)
    return path


def load_trace(path: str | Path) -> Trace:
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        return trace_from_dict(json.load(f))


RESULT_COLUMNS = (
    "pid",
    "arrival_time",
    "burst_time",
    "priority",
    "start_time",
    "end_time",
    "response_time",
    "turnaround_time",
    "waiting_time",
)


def save_results(results: Sequence[ResultRecord], path: str | Path) -> Path:
    """
    Write results as CSV; values that are unavailable become empty cells.
    """
    path = Path(path)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(RESULT_COLUMNS)
        for r in results:
            row = [getattr(r, col) for col in RESULT_COLUMNS]
            writer.writerow(["" if v is None else v for v in row])
    return path
