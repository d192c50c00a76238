import pytest

from sched_trace.algorithms import generate
from sched_trace.metrics import compute_results, compute_system_metrics, evaluate, replay_views
from sched_trace.models import LiveProcessView, Policy, ProcessSpec, StepKind


def _fcfs_pair():
    return [ProcessSpec(1, arrival_time=0, burst_time=4), ProcessSpec(2, arrival_time=1, burst_time=3)]


def test_fcfs_results():
    procs = _fcfs_pair()
    trace = generate("fcfs", procs)
    p1, p2 = compute_results(trace, procs)

    assert (p1.start_time, p1.end_time, p1.turnaround_time, p1.waiting_time) == (0, 4, 4, 0)
    assert (p2.start_time, p2.end_time, p2.turnaround_time, p2.waiting_time) == (4, 7, 6, 3)
    assert p2.response_time == 3


def test_rr_results():
    procs = [ProcessSpec(1, arrival_time=0, burst_time=4), ProcessSpec(2, arrival_time=0, burst_time=2)]
    results = compute_results(generate("rr", procs, quantum=2), procs)
    assert [r.waiting_time for r in results] == [2, 2]
    assert [r.response_time for r in results] == [0, 2]


@pytest.mark.parametrize("policy", list(Policy))
def test_metrics_identity(policy):
    procs = [
        ProcessSpec(1, arrival_time=0, burst_time=6, priority=3),
        ProcessSpec(2, arrival_time=2, burst_time=2, priority=1),
        ProcessSpec(3, arrival_time=3, burst_time=5, priority=2),
        ProcessSpec(4, arrival_time=12, burst_time=3, priority=1),
    ]
    trace = generate(policy, procs, quantum=2, context_switch_time=1)
    for r in compute_results(trace, procs):
        assert r.completed
        assert r.turnaround_time == r.end_time - r.arrival_time
        assert r.waiting_time == r.turnaround_time - r.burst_time
        assert r.waiting_time >= 0
        assert r.response_time == r.start_time - r.arrival_time >= 0


def test_system_metrics():
    procs = _fcfs_pair()
    result = evaluate(generate("fcfs", procs))
    system = result.system

    assert system.total_time == 7
    assert system.completed == 2
    assert system.avg_waiting == pytest.approx(1.5)
    assert system.avg_turnaround == pytest.approx(5.0)
    assert system.avg_response == pytest.approx(1.5)
    assert system.cpu_utilization == pytest.approx(100.0)
    assert system.throughput == pytest.approx(2 / 7)
    assert result.algorithm == "FCFS"


def test_utilization_counts_idle_and_context_switch_time():
    idle = evaluate(generate("fcfs", [ProcessSpec(1, arrival_time=3, burst_time=2)])).system
    assert idle.idle_time == 3
    assert idle.cpu_utilization == pytest.approx(40.0)

    procs = [ProcessSpec(1, arrival_time=0, burst_time=2), ProcessSpec(2, arrival_time=0, burst_time=2)]
    switched = evaluate(generate("fcfs", procs, context_switch_time=1)).system
    assert switched.context_switches == 1
    assert switched.context_switch_time == 1
    assert switched.cpu_utilization == pytest.approx(80.0)


def test_truncated_playback_leaves_unfinished_unavailable():
    procs = _fcfs_pair()
    trace = generate("fcfs", procs)

    views = [LiveProcessView.from_spec(p) for p in procs]
    by_pid = {v.pid: v for v in views}
    for step in list(trace)[:5]:
        if step.kind is StepKind.RUNNING:
            by_pid[step.pid].advance(step.time)

    p1, p2 = compute_results(trace, procs, views)
    assert p1.completed and p1.turnaround_time == 4
    assert not p2.completed
    assert p2.start_time == 4 and p2.response_time == 3
    assert p2.end_time is None
    assert p2.turnaround_time is None
    assert p2.waiting_time is None

    system = compute_system_metrics([p1, p2], trace)
    assert system.completed == 1
    assert system.avg_waiting == 0.0
    assert system.avg_turnaround == 4.0


def test_unstarted_process_has_no_response_time():
    procs = _fcfs_pair()
    trace = generate("fcfs", procs)
    views = [LiveProcessView.from_spec(p) for p in procs]
    results = compute_results(trace, procs, views)
    assert all(r.start_time is None and r.response_time is None for r in results)
    assert compute_system_metrics(results, trace).throughput == 0.0


def test_missing_live_view_is_an_error():
    procs = _fcfs_pair()
    trace = generate("fcfs", procs)
    with pytest.raises(ValueError):
        compute_results(trace, procs, [LiveProcessView.from_spec(procs[0])])


def test_replay_views_matches_full_run():
    trace = generate("srtf", [ProcessSpec(1, arrival_time=0, burst_time=8), ProcessSpec(2, arrival_time=1, burst_time=4)])
    views = {v.pid: v for v in replay_views(trace)}
    assert views[2].start_time == 1 and views[2].end_time == 5
    assert views[1].end_time == 12
    assert all(v.remaining_burst_time == 0 for v in views.values())
