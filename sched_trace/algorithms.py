from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from numbers import Real
from typing import Callable, Deque, Dict, List, Optional, Sequence, Set, Tuple, Union

from loguru import logger

from .errors import InvalidInputError, InvalidParamError
from .models import Policy, ProcessSpec, Step, StepKind, Trace


@dataclass
class ProcessRunState:
    """
    Mutable bookkeeping for one process during a single generation call.
    """

    spec: ProcessSpec
    remaining_time: int
    completed_at: Optional[int] = None

    @property
    def pid(self) -> int:
        return self.spec.pid

    @property
    def completed(self) -> bool:
        return self.completed_at is not None


class _TraceBuilder:
    """
    Owns all scratch state of one ``generate`` call; never shared or returned.
    """

    def __init__(self, processes: Sequence[ProcessSpec], context_switch_time: int):
        self.states: List[ProcessRunState] = [
            ProcessRunState(spec=p, remaining_time=p.burst_time) for p in processes
        ]
        self.arrivals_at: Dict[int, Set[int]] = {}
        for p in processes:
            self.arrivals_at.setdefault(p.arrival_time, set()).add(p.pid)
        self.context_switch_time = context_switch_time
        self.time = 0
        self.last_pid: Optional[int] = None
        self.steps: List[Step] = []

    def pending(self) -> bool:
        return any(not s.completed for s in self.states)

    def ready(self) -> List[ProcessRunState]:
        return [s for s in self.states if not s.completed and s.spec.arrival_time <= self.time]

    def _emit(self, kind: StepKind, pid: Optional[int] = None) -> None:
        arrivals = frozenset(self.arrivals_at.get(self.time, ()))
        self.steps.append(Step(time=self.time, kind=kind, pid=pid, arrivals=arrivals))
        self.time += 1

    def idle(self) -> None:
        self._emit(StepKind.IDLE)

    def dispatch(self, state: ProcessRunState) -> None:
        # No switch cost before the first dispatch or when the same pid continues.
        if self.last_pid is not None and self.last_pid != state.pid:
            for _ in range(self.context_switch_time):
                self._emit(StepKind.CONTEXT_SWITCH)
        self.last_pid = state.pid

    def run(self, state: ProcessRunState, units: int) -> None:
        for _ in range(units):
            self._emit(StepKind.RUNNING, state.pid)
            state.remaining_time -= 1
        if state.remaining_time == 0:
            state.completed_at = self.time

    def build(self, policy: Policy, processes: Sequence[ProcessSpec], quantum: Optional[int]) -> Trace:
        return Trace(
            policy=policy,
            steps=tuple(self.steps),
            processes=tuple(processes),
            quantum=quantum,
            context_switch_time=self.context_switch_time,
        )


SelectionKey = Callable[[ProcessRunState], Tuple]


def parse_policy(policy: Union[str, Policy]) -> Policy:
    if isinstance(policy, Policy):
        return policy
    try:
        return Policy(str(policy).strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in Policy)
        raise InvalidParamError(f"Unknown scheduling policy '{policy}' (choose from {choices})") from None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_processes(processes: Sequence[ProcessSpec], policy: Policy) -> None:
    """
    Reject the whole process set if anything in it is unusable.
    """
    if not processes:
        raise InvalidInputError(["process set is empty"])

    problems: List[str] = []
    seen: Set[int] = set()
    for p in processes:
        if not _is_int(p.pid) or p.pid < 1:
            problems.append(f"pid {p.pid!r} must be a positive integer")
        elif p.pid in seen:
            problems.append(f"pid {p.pid} is duplicated")
        else:
            seen.add(p.pid)

        if not _is_int(p.arrival_time) or p.arrival_time < 0:
            problems.append(f"P{p.pid}: arrival time must be an integer >= 0 (got {p.arrival_time!r})")
        if not _is_int(p.burst_time) or p.burst_time < 1:
            problems.append(f"P{p.pid}: burst time must be an integer >= 1 (got {p.burst_time!r})")
        if policy.uses_priority and (not _is_int(p.priority) or p.priority < 1):
            problems.append(f"P{p.pid}: priority must be an integer >= 1 (got {p.priority!r})")

    if problems:
        raise InvalidInputError(problems)


def normalize_context_switch(value: Optional[Real]) -> int:
    """
    Context switch overhead is charged in whole time units only.
    """
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise InvalidParamError(f"Context switch time must be a number (got {value!r})")
    if value < 0:
        raise InvalidParamError(f"Context switch time must be >= 0 (got {value})")
    if value != int(value):
        raise InvalidParamError(
            f"Context switch time must be a whole number of time units (got {value})"
        )
    return int(value)


def _prepare(
    policy: Policy,
    processes: Sequence[ProcessSpec],
    context_switch_time: Optional[Real],
) -> _TraceBuilder:
    validate_processes(processes, policy)
    return _TraceBuilder(processes, normalize_context_switch(context_switch_time))


def _run_to_completion(builder: _TraceBuilder, key: SelectionKey) -> None:
    """
    Non-preemptive skeleton: once selected, a process keeps the CPU until done.
    """
    while builder.pending():
        ready = builder.ready()
        if not ready:
            builder.idle()
            continue

        state = min(ready, key=key)
        builder.dispatch(state)
        builder.run(state, state.remaining_time)


def _run_preemptive(builder: _TraceBuilder, key: SelectionKey) -> None:
    """
    Preemptive skeleton: the selection is re-made every time unit.
    """
    while builder.pending():
        ready = builder.ready()
        if not ready:
            builder.idle()
            continue

        state = min(ready, key=key)
        builder.dispatch(state)
        builder.run(state, 1)


def _finish(builder: _TraceBuilder, policy: Policy, processes: Sequence[ProcessSpec], quantum: Optional[int] = None) -> Trace:
    trace = builder.build(policy, processes, quantum)
    logger.debug(
        "generated {} trace: {} processes, length={}, context switches={}",
        policy.value,
        len(processes),
        len(trace),
        trace.context_switches,
    )
    return trace


def schedule_fcfs(
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    First-Come First-Serve (non-preemptive).
    """
    builder = _prepare(Policy.FCFS, processes, context_switch_time)
    _run_to_completion(builder, key=lambda s: (s.spec.arrival_time, s.pid))
    return _finish(builder, Policy.FCFS, processes)


def schedule_sjf(
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    Shortest Job First (non-preemptive).

    The choice is made on total burst time among the ready processes and is
    not revisited when a shorter job arrives mid-run.
    """
    builder = _prepare(Policy.SJF, processes, context_switch_time)
    _run_to_completion(builder, key=lambda s: (s.spec.burst_time, s.pid))
    return _finish(builder, Policy.SJF, processes)


def schedule_srtf(
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    Shortest Remaining Time First (preemptive SJF).
    """
    builder = _prepare(Policy.SRTF, processes, context_switch_time)
    _run_preemptive(builder, key=lambda s: (s.remaining_time, s.pid))
    return _finish(builder, Policy.SRTF, processes)


def schedule_lrtf(
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    Longest Remaining Time First (preemptive).
    """
    builder = _prepare(Policy.LRTF, processes, context_switch_time)
    _run_preemptive(builder, key=lambda s: (-s.remaining_time, s.pid))
    return _finish(builder, Policy.LRTF, processes)


def schedule_rr(
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    Round Robin scheduling with a fixed time quantum.

    Processes that arrived while a slice was running join the queue ahead of
    the preempted process; one arriving exactly as the slice ends queues
    behind it.
    """
    if not _is_int(quantum) or quantum < 1:
        raise InvalidParamError(f"Round Robin requires a time quantum >= 1 (got {quantum!r})")

    builder = _prepare(Policy.RR, processes, context_switch_time)
    queue: Deque[ProcessRunState] = deque()

    def enqueue_new_arrivals(running: Optional[ProcessRunState] = None, before_now: bool = False) -> None:
        queued = {s.pid for s in queue}
        for state in sorted(builder.ready(), key=lambda s: (s.spec.arrival_time, s.pid)):
            if before_now and state.spec.arrival_time >= builder.time:
                continue
            if state is not running and state.pid not in queued:
                queue.append(state)

    while builder.pending():
        enqueue_new_arrivals()
        if not queue:
            builder.idle()
            continue

        state = queue.popleft()
        builder.dispatch(state)
        builder.run(state, min(quantum, state.remaining_time))

        enqueue_new_arrivals(running=state, before_now=True)
        if not state.completed:
            queue.append(state)

    return _finish(builder, Policy.RR, processes, quantum)


def schedule_priority(
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    Static Priority scheduling (non-preemptive).

    Lower numeric priority value means higher priority.
    """
    builder = _prepare(Policy.PRIORITY, processes, context_switch_time)
    _run_to_completion(builder, key=lambda s: (s.spec.priority, s.pid))
    return _finish(builder, Policy.PRIORITY, processes)


def schedule_priority_preemptive(
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    Static Priority scheduling (preemptive).

    A newly arrived process with a strictly smaller priority value takes the
    CPU on the next time unit.
    """
    builder = _prepare(Policy.PRIORITY_PREEMPTIVE, processes, context_switch_time)
    _run_preemptive(builder, key=lambda s: (s.spec.priority, s.pid))
    return _finish(builder, Policy.PRIORITY_PREEMPTIVE, processes)


ALGORITHMS = {
    Policy.FCFS: schedule_fcfs,
    Policy.SJF: schedule_sjf,
    Policy.SRTF: schedule_srtf,
    Policy.LRTF: schedule_lrtf,
    Policy.RR: schedule_rr,
    Policy.PRIORITY: schedule_priority,
    Policy.PRIORITY_PREEMPTIVE: schedule_priority_preemptive,
}


def generate(
    policy: Union[str, Policy],
    processes: Sequence[ProcessSpec],
    quantum: Optional[int] = None,
    context_switch_time: Optional[Real] = 0,
) -> Trace:
    """
    Dispatch to the requested policy. The quantum only matters for round robin.
    """
    policy = parse_policy(policy)
    func = ALGORITHMS[policy]
    return func(list(processes), quantum=quantum, context_switch_time=context_switch_time)
