from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from .models import (
    LiveProcessView,
    ProcessSpec,
    ResultRecord,
    ScheduleResult,
    StepKind,
    SystemMetrics,
    Trace,
)


def replay_views(trace: Trace) -> List[LiveProcessView]:
    """
    Run a whole trace through fresh live views, as an uninterrupted playback would.
    """
    views = [LiveProcessView.from_spec(p) for p in trace.processes]
    by_pid = {v.pid: v for v in views}
    for step in trace:
        if step.kind is StepKind.RUNNING:
            by_pid[step.pid].advance(step.time)
    return views


def _record(spec: ProcessSpec, view: LiveProcessView) -> ResultRecord:
    start_time = view.start_time if view.started else None
    end_time = view.end_time if view.completed else None

    response_time = start_time - spec.arrival_time if start_time is not None else None
    turnaround_time: Optional[int] = None
    waiting_time: Optional[int] = None
    if end_time is not None:
        turnaround_time = end_time - spec.arrival_time
        waiting_time = max(0, turnaround_time - spec.burst_time)

    return ResultRecord(
        pid=spec.pid,
        arrival_time=spec.arrival_time,
        burst_time=spec.burst_time,
        start_time=start_time,
        end_time=end_time,
        response_time=response_time,
        turnaround_time=turnaround_time,
        waiting_time=waiting_time,
        priority=spec.priority,
    )


def compute_results(
    trace: Trace,
    processes: Sequence[ProcessSpec],
    live_views: Optional[Iterable[LiveProcessView]] = None,
) -> List[ResultRecord]:
    """
    Build one ResultRecord per process from the final live views.

    Without ``live_views`` the trace is replayed to the end first. Processes
    that never finished (a playback stopped early) keep ``end_time``,
    ``turnaround_time`` and ``waiting_time`` as None instead of a guessed value.
    """
    if live_views is None:
        live_views = replay_views(trace)

    by_pid = {v.pid: v for v in live_views}
    results: List[ResultRecord] = []
    for spec in processes:
        view = by_pid.get(spec.pid)
        if view is None:
            raise ValueError(f"No live view for process P{spec.pid}")
        results.append(_record(spec, view))
    return results


def _mean(values: List[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_system_metrics(results: Sequence[ResultRecord], trace: Trace) -> SystemMetrics:
    """
    Aggregate metrics over a result set; averages only count completed processes.
    """
    total_time = len(trace)
    done = [r for r in results if r.completed]
    busy_time = sum(r.burst_time for r in results)

    throughput = len(done) / total_time if total_time > 0 else 0.0
    cpu_utilization = busy_time / total_time * 100 if total_time > 0 else 0.0

    return SystemMetrics(
        total_time=total_time,
        busy_time=busy_time,
        idle_time=trace.count(StepKind.IDLE),
        context_switch_time=trace.count(StepKind.CONTEXT_SWITCH),
        context_switches=trace.context_switches,
        completed=len(done),
        avg_waiting=_mean([r.waiting_time for r in done]),
        avg_turnaround=_mean([r.turnaround_time for r in done]),
        avg_response=_mean([r.response_time for r in done]),
        throughput=throughput,
        cpu_utilization=cpu_utilization,
    )


def evaluate(trace: Trace) -> ScheduleResult:
    """
    Results and system metrics for a trace played to completion.
    """
    results = compute_results(trace, trace.processes)
    return ScheduleResult(trace=trace, results=results, system=compute_system_metrics(results, trace))
