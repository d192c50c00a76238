from __future__ import annotations

from typing import List, Optional

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import ScheduledSlice, StepKind

PALETTE = ("red", "green", "yellow", "blue", "magenta", "cyan")


def pid_color(pid: int) -> str:
    """
    Colour for a process; the same pid always gets the same colour.
    """
    return PALETTE[(pid - 1) % len(PALETTE)]


def _fill(sl: ScheduledSlice) -> str:
    if sl.kind is StepKind.IDLE:
        return "."
    if sl.kind is StepKind.CONTEXT_SWITCH:
        return "x"
    return "="


def _time_marks(slices: List[ScheduledSlice]) -> str:
    # The last digit of each mark sits in column ``end_time``; later marks win.
    grid = [" "] * (slices[-1].end_time + 1)
    grid[0] = "0"
    for sl in slices:
        label = str(sl.end_time)
        grid[sl.end_time - len(label) + 1 : sl.end_time + 1] = label
    return "".join(grid)


def render_gantt(slices: List[ScheduledSlice], limit: Optional[int] = None) -> str:
    """
    Plain-text Gantt chart: ``=`` runs, ``.`` idle, ``x`` context switch.

    With ``limit`` only the first ``limit`` time units are drawn.
    """
    if limit is not None:
        slices = _truncate(slices, limit)
    if not slices:
        return "(no execution)"

    line = "|"
    labels = ""
    for sl in slices:
        line += _fill(sl) * sl.width
        labels += (sl.label if sl.kind is StepKind.RUNNING else "")[: sl.width].ljust(sl.width)
    line += "|"

    return "\n".join(
        [
            "Gantt Chart:",
            line,
            " " + labels,
            _time_marks(slices),
        ]
    )


def _truncate(slices: List[ScheduledSlice], limit: int) -> List[ScheduledSlice]:
    kept: List[ScheduledSlice] = []
    for sl in slices:
        if sl.start_time >= limit:
            break
        kept.append(ScheduledSlice(kind=sl.kind, start_time=sl.start_time, end_time=min(sl.end_time, limit), pid=sl.pid))
    return kept


def build_rich_gantt(slices: List[ScheduledSlice], limit: Optional[int] = None) -> tuple[Panel, str]:
    """
    Build a Rich Panel containing a colored Gantt chart and a string with time marks.
    """
    if limit is not None:
        slices = _truncate(slices, limit)
    if not slices:
        panel = Panel("No execution", title="Gantt Chart")
        return panel, ""

    timeline = Text()
    labels = Text()

    for sl in slices:
        if sl.kind is StepKind.IDLE:
            timeline.append("." * sl.width, style="dim")
            labels.append(" " * sl.width)
        elif sl.kind is StepKind.CONTEXT_SWITCH:
            timeline.append("x" * sl.width, style="bold white on grey37")
            labels.append(" " * sl.width)
        else:
            timeline.append(" " * sl.width, style=f"on {pid_color(sl.pid)}")
            labels.append(sl.label[: sl.width].ljust(sl.width), style="bold")

    table = Table.grid(padding=(0, 0))
    table.add_row(timeline)
    table.add_row(labels)

    panel = Panel.fit(table, title="Gantt Chart")
    return panel, _time_marks(slices)
