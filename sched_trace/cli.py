from __future__ import annotations

import argparse
import time
from pathlib import Path
from typing import Iterable, List, Optional

from loguru import logger
from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.markup import escape
from rich.table import Table

from .algorithms import generate
from .config import SimulationConfig
from .errors import InvalidInputError
from .gantt import build_rich_gantt, render_gantt
from .log import configure_logging
from .metrics import compute_results, compute_system_metrics, evaluate
from .models import Policy, ResultRecord, SystemMetrics, Trace
from .playback import PlaybackEngine, PlaybackStatus, Snapshot
from .workload_io import load_scenario, save_results, save_trace

POLICY_CHOICES = [p.value for p in Policy]


def _add_run_options(parser: argparse.ArgumentParser, with_policy: bool = True) -> None:
    parser.add_argument(
        "--workload",
        "-w",
        required=True,
        help="Path to JSON or CSV workload file (JSON may also carry run settings).",
    )
    if with_policy:
        parser.add_argument(
            "--algorithm",
            "-a",
            choices=POLICY_CHOICES,
            default=None,
            help="Scheduling policy (default: the workload's 'policy' key, else fcfs).",
        )
    parser.add_argument(
        "--quantum",
        "-q",
        type=int,
        default=None,
        help="Time quantum for round robin (default: 2).",
    )
    parser.add_argument(
        "--context-switch",
        "-c",
        type=float,
        default=None,
        dest="context_switch_time",
        help="Whole time units charged when the CPU passes to a different process (default: 0).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sched-trace",
        description="CPU scheduling trace engine (FCFS, SJF, SRTF, LRTF, RR, Priority).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log engine activity to stderr.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Generate a trace for a workload and print its metrics.")
    _add_run_options(run_parser)
    run_parser.add_argument(
        "--plain",
        action="store_true",
        help="Draw the Gantt chart as plain text.",
    )
    run_parser.add_argument(
        "--export",
        default=None,
        help="Write the generated trace to this JSON file.",
    )
    run_parser.add_argument(
        "--results-csv",
        default=None,
        help="Write the per-process results to this CSV file.",
    )

    compare_parser = subparsers.add_parser(
        "compare",
        help="Run multiple policies on the same workload and compare aggregate metrics.",
    )
    _add_run_options(compare_parser, with_policy=False)
    compare_parser.add_argument(
        "--algorithms",
        "-a",
        nargs="+",
        choices=POLICY_CHOICES,
        default=POLICY_CHOICES,
        help="Policies to compare (default: all).",
    )

    play_parser = subparsers.add_parser(
        "play",
        help="Replay a trace tick by tick in the terminal (Ctrl+C pauses and reports).",
    )
    _add_run_options(play_parser)
    play_parser.add_argument(
        "--speed",
        "-s",
        type=float,
        default=None,
        help="Playback speed multiplier; one tick lasts 1/speed seconds (default: 1.0).",
    )

    return parser


def _resolve_config(args: argparse.Namespace, settings: dict) -> SimulationConfig:
    config = SimulationConfig.from_env().merged(settings)
    return config.merged(
        {
            "policy": getattr(args, "algorithm", None),
            "quantum": args.quantum,
            "context_switch_time": args.context_switch_time,
            "speed": getattr(args, "speed", None),
        }
    )


def _fmt(value) -> str:
    return "-" if value is None else str(value)


def _results_table(results: Iterable[ResultRecord], title: str = "Per-process metrics") -> Table:
    headers = [
        "PID",
        "Arrive",
        "Burst",
        "Start",
        "Complete",
        "Wait",
        "Turnaround",
        "Response",
        "Priority",
    ]

    table = Table(title=title, box=box.SIMPLE_HEAVY)
    for h in headers:
        justify = "center" if h in {"PID", "Priority"} else "right"
        table.add_column(h, justify=justify)

    for r in results:
        table.add_row(
            f"P{r.pid}",
            str(r.arrival_time),
            str(r.burst_time),
            _fmt(r.start_time),
            "not completed" if r.end_time is None else str(r.end_time),
            _fmt(r.waiting_time),
            _fmt(r.turnaround_time),
            _fmt(r.response_time),
            "" if r.priority is None else str(r.priority),
        )
    return table


def _system_table(system: SystemMetrics) -> Table:
    table = Table(title="System metrics", box=box.SIMPLE_HEAVY)
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    table.add_row("Avg waiting", f"{system.avg_waiting:.2f}")
    table.add_row("Avg turnaround", f"{system.avg_turnaround:.2f}")
    table.add_row("Avg response", f"{system.avg_response:.2f}")
    table.add_row("Throughput (proc/time)", f"{system.throughput:.3f}")
    table.add_row("CPU utilization", f"{system.cpu_utilization:.1f}%")
    table.add_row("Completed", str(system.completed))
    table.add_row("Total time", str(system.total_time))
    table.add_row("Idle time", str(system.idle_time))
    table.add_row("Context switches", f"{system.context_switches} ({system.context_switch_time} units)")
    return table


def _print_gantt(console: Console, trace: Trace, plain: bool = False) -> None:
    if plain:
        console.print(render_gantt(trace.slices()), highlight=False)
        return
    panel, time_marks = build_rich_gantt(trace.slices())
    console.print(panel)
    if time_marks:
        console.print(time_marks, highlight=False)


def _print_header(console: Console, trace: Trace) -> None:
    console.print(f"[bold]Algorithm:[/bold] {trace.policy.label}")
    if trace.quantum is not None:
        console.print(f"[bold]Quantum:[/bold] {trace.quantum}")
    if trace.context_switch_time:
        console.print(f"[bold]Context switch:[/bold] {trace.context_switch_time}")
    console.print()


def _live_table(snapshot: Snapshot) -> Table:
    table = Table(
        title=f"Live execution  t={snapshot.time_index}/{snapshot.trace_length}  ({snapshot.status.value})",
        box=box.SIMPLE_HEAVY,
    )
    table.add_column("PID", justify="center")
    table.add_column("Arrival", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Status")
    for v in snapshot.views:
        table.add_row(f"P{v.pid}", str(v.arrival_time), str(v.remaining_burst_time), v.status(snapshot.time_index))
    return table


def _render_live(trace: Trace, snapshot: Snapshot) -> Group:
    panel, time_marks = build_rich_gantt(trace.slices(), limit=snapshot.time_index)
    return Group(_live_table(snapshot), panel, time_marks)


def _run(args: argparse.Namespace, console: Console) -> int:
    settings, processes = load_scenario(Path(args.workload))
    config = _resolve_config(args, settings)
    trace = generate(config.policy, processes, quantum=config.quantum, context_switch_time=config.context_switch_time)
    result = evaluate(trace)

    _print_header(console, trace)
    _print_gantt(console, trace, plain=args.plain)
    console.print()
    console.print(_results_table(result.results))
    console.print()
    console.print(_system_table(result.system))

    if args.export:
        console.print(f"[dim]Trace written to {save_trace(trace, args.export)}[/dim]")
    if args.results_csv:
        console.print(f"[dim]Results written to {save_results(result.results, args.results_csv)}[/dim]")
    return 0


def _compare(args: argparse.Namespace, console: Console) -> int:
    settings, processes = load_scenario(Path(args.workload))
    config = _resolve_config(args, settings)

    summary_table = Table(title=f"Algorithm comparison: {args.workload}", box=box.SIMPLE_HEAVY)
    summary_table.add_column("Algorithm")
    summary_table.add_column("Quantum", justify="right")
    summary_table.add_column("Avg waiting", justify="right")
    summary_table.add_column("Avg turnaround", justify="right")
    summary_table.add_column("Avg response", justify="right")
    summary_table.add_column("CPU util.", justify="right")
    summary_table.add_column("Throughput", justify="right")

    for name in args.algorithms:
        policy = Policy(name)
        try:
            trace = generate(policy, processes, quantum=config.quantum, context_switch_time=config.context_switch_time)
        except InvalidInputError as exc:
            console.print(f"[yellow]Skipping {policy.label}: {escape(str(exc))}[/yellow]")
            continue
        system = evaluate(trace).system
        summary_table.add_row(
            policy.label,
            "" if trace.quantum is None else str(trace.quantum),
            f"{system.avg_waiting:.2f}",
            f"{system.avg_turnaround:.2f}",
            f"{system.avg_response:.2f}",
            f"{system.cpu_utilization:.1f}%",
            f"{system.throughput:.3f}",
        )

    console.print(summary_table)
    return 0


def _play(args: argparse.Namespace, console: Console) -> int:
    settings, processes = load_scenario(Path(args.workload))
    config = _resolve_config(args, settings)
    trace = generate(config.policy, processes, quantum=config.quantum, context_switch_time=config.context_switch_time)

    _print_header(console, trace)
    engine = PlaybackEngine(trace, speed=config.speed)

    with Live(_render_live(trace, engine.snapshot()), console=console, refresh_per_second=10) as live:
        engine.on_tick = lambda snap: live.update(_render_live(trace, snap))
        engine.start()
        try:
            while not engine.wait(timeout=0.1):
                pass
        except KeyboardInterrupt:
            engine.pause()

    snapshot = engine.snapshot()
    if snapshot.status is PlaybackStatus.COMPLETED:
        results: List[ResultRecord] = list(snapshot.results)
        system = snapshot.system
    else:
        # Stopped early: report what finished, leave the rest unavailable.
        console.print(f"[yellow]Playback paused at t={snapshot.time_index}.[/yellow]")
        results = compute_results(trace, trace.processes, snapshot.views)
        system = compute_system_metrics(results, trace)

    console.print(_results_table(results, title="Final results"))
    console.print()
    console.print(_system_table(system))
    return 0


COMMANDS = {
    "run": _run,
    "compare": _compare,
    "play": _play,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = SimulationConfig.from_env()
    configure_logging("DEBUG" if args.verbose else config.log_level)

    console = Console()
    started = time.perf_counter()
    try:
        status = COMMANDS[args.command](args, console)
    except ValueError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        return 2
    logger.debug("{} finished in {:.3f}s", args.command, time.perf_counter() - started)
    return status


if __name__ == "__main__":
    raise SystemExit(main())
