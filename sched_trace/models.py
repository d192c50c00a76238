from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterator, List, Optional, Tuple

TRACE_FORMAT_VERSION = 1


class Policy(str, Enum):
    FCFS = "fcfs"
    SJF = "sjf"
    SRTF = "srtf"
    LRTF = "lrtf"
    RR = "rr"
    PRIORITY = "priority"
    PRIORITY_PREEMPTIVE = "priority-preemptive"

    @property
    def label(self) -> str:
        return _POLICY_LABELS[self]

    @property
    def preemptive(self) -> bool:
        return self not in (Policy.FCFS, Policy.SJF, Policy.PRIORITY)

    @property
    def uses_priority(self) -> bool:
        return self in (Policy.PRIORITY, Policy.PRIORITY_PREEMPTIVE)

    @property
    def uses_quantum(self) -> bool:
        return self is Policy.RR


_POLICY_LABELS = {
    Policy.FCFS: "FCFS",
    Policy.SJF: "SJF (non-preemptive)",
    Policy.SRTF: "SRTF",
    Policy.LRTF: "LRTF",
    Policy.RR: "Round Robin",
    Policy.PRIORITY: "Priority (non-preemptive)",
    Policy.PRIORITY_PREEMPTIVE: "Priority (preemptive)",
}


@dataclass(frozen=True)
class ProcessSpec:
    pid: int
    arrival_time: int
    burst_time: int
    priority: Optional[int] = None


class StepKind(str, Enum):
    RUNNING = "running"
    IDLE = "idle"
    CONTEXT_SWITCH = "context_switch"


@dataclass(frozen=True)
class Step:
    """
    What the CPU did during the time unit ``[time, time + 1)``.

    ``pid`` is set only for RUNNING steps. ``arrivals`` lists the pids whose
    arrival time equals ``time``; it is informational and never read by the
    schedulers.
    """

    time: int
    kind: StepKind
    pid: Optional[int] = None
    arrivals: FrozenSet[int] = frozenset()

    @property
    def running_pid(self) -> Optional[int]:
        return self.pid if self.kind is StepKind.RUNNING else None

    def token(self) -> str:
        if self.kind is StepKind.RUNNING:
            return f"p{self.pid}"
        if self.kind is StepKind.IDLE:
            return "idle"
        return "cs"


@dataclass
class ScheduledSlice:
    """
    One contiguous run of identical steps in the Gantt chart.
    """

    kind: StepKind
    start_time: int
    end_time: int
    pid: Optional[int] = None

    @property
    def label(self) -> str:
        if self.kind is StepKind.RUNNING:
            return f"P{self.pid}"
        if self.kind is StepKind.IDLE:
            return "idle"
        return "CS"

    @property
    def width(self) -> int:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class Trace:
    """
    Immutable, time-indexed execution record produced by one generation call.

    ``steps[i].time == i`` for every index.
    """

    policy: Policy
    steps: Tuple[Step, ...]
    processes: Tuple[ProcessSpec, ...]
    quantum: Optional[int] = None
    context_switch_time: int = 0
    version: int = TRACE_FORMAT_VERSION

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __getitem__(self, index: int) -> Step:
        return self.steps[index]

    def running_pids(self) -> List[Optional[int]]:
        return [s.running_pid for s in self.steps]

    def tokens(self) -> List[str]:
        return [s.token() for s in self.steps]

    def count(self, kind: StepKind) -> int:
        return sum(1 for s in self.steps if s.kind is kind)

    def units_for(self, pid: int) -> int:
        return sum(1 for s in self.steps if s.running_pid == pid)

    @property
    def context_switches(self) -> int:
        """
        Number of switch episodes, not the number of time units they occupy.
        """
        return sum(1 for sl in self.slices() if sl.kind is StepKind.CONTEXT_SWITCH)

    def slices(self) -> List[ScheduledSlice]:
        slices: List[ScheduledSlice] = []
        for step in self.steps:
            last = slices[-1] if slices else None
            if last is not None and last.kind is step.kind and last.pid == step.pid:
                last.end_time = step.time + 1
            else:
                slices.append(
                    ScheduledSlice(kind=step.kind, start_time=step.time, end_time=step.time + 1, pid=step.pid)
                )
        return slices


@dataclass
class LiveProcessView:
    """
    Per-process state as seen by a playback at the current tick.
    """

    pid: int
    arrival_time: int
    burst_time: int
    remaining_burst_time: int
    started: bool = False
    completed: bool = False
    start_time: Optional[int] = None
    end_time: Optional[int] = None

    @classmethod
    def from_spec(cls, spec: ProcessSpec) -> "LiveProcessView":
        return cls(
            pid=spec.pid,
            arrival_time=spec.arrival_time,
            burst_time=spec.burst_time,
            remaining_burst_time=spec.burst_time,
        )

    def advance(self, time: int) -> None:
        """
        Account for one unit of CPU received during ``[time, time + 1)``.
        """
        if self.completed:
            return
        if not self.started:
            self.started = True
            self.start_time = time
        self.remaining_burst_time -= 1
        if self.remaining_burst_time == 0:
            self.completed = True
            self.end_time = time + 1

    def status(self, current_time: int) -> str:
        if self.completed:
            return "Completed"
        if self.started:
            return "Running"
        if current_time < self.arrival_time:
            return "Not Arrived"
        return "Waiting"


@dataclass(frozen=True)
class ResultRecord:
    pid: int
    arrival_time: int
    burst_time: int
    start_time: Optional[int]
    end_time: Optional[int]
    response_time: Optional[int]
    turnaround_time: Optional[int]
    waiting_time: Optional[int]
    priority: Optional[int] = None

    @property
    def completed(self) -> bool:
        return self.end_time is not None


@dataclass(frozen=True)
class SystemMetrics:
    total_time: int
    busy_time: int
    idle_time: int
    context_switch_time: int
    context_switches: int
    completed: int
    avg_waiting: float
    avg_turnaround: float
    avg_response: float
    throughput: float
    cpu_utilization: float


@dataclass
class ScheduleResult:
    trace: Trace
    results: List[ResultRecord] = field(default_factory=list)
    system: Optional[SystemMetrics] = None

    @property
    def algorithm(self) -> str:
        return self.trace.policy.label

    @property
    def quantum(self) -> Optional[int]:
        return self.trace.quantum
