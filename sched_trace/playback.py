from __future__ import annotations

import math
import threading
from dataclasses import dataclass, replace
from enum import Enum
from numbers import Real
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .errors import InvalidParamError
from .metrics import compute_results, compute_system_metrics
from .models import LiveProcessView, ResultRecord, StepKind, SystemMetrics, Trace


class PlaybackStatus(str, Enum):
    EMPTY = "empty"
    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Snapshot:
    """
    Read-only copy of the playback state at one instant.

    ``time_index`` is the number of ticks applied so far, i.e. the index of
    the next step to play.
    """

    time_index: int
    views: Tuple[LiveProcessView, ...]
    status: PlaybackStatus
    trace_length: int = 0
    results: Optional[Tuple[ResultRecord, ...]] = None
    system: Optional[SystemMetrics] = None


Listener = Callable[[Snapshot], None]


def _check_speed(speed) -> float:
    if isinstance(speed, bool) or not isinstance(speed, Real) or not math.isfinite(speed) or speed <= 0:
        raise InvalidParamError(f"Playback speed must be a positive number (got {speed!r})")
    return float(speed)


class PlaybackEngine:
    """
    Replays a precomputed Trace one step per tick on a cancellable timer.

    Every tick is a one-shot ``threading.Timer`` re-armed after the previous
    tick is applied, so at most one timer is pending per engine. Each timer
    carries the cancellation token that was current when it was armed; pause,
    reset, load and speed changes bump the token under the engine lock, and a
    timer whose token is stale does nothing.

    Listeners run on the timer thread (or the caller's thread for ``step``)
    while the lock is held, so they observe ticks strictly in order.
    """

    def __init__(
        self,
        trace: Optional[Trace] = None,
        speed: float = 1.0,
        on_tick: Optional[Listener] = None,
        on_complete: Optional[Listener] = None,
    ):
        self._lock = threading.RLock()
        self._done = threading.Event()
        self._timer: Optional[threading.Timer] = None
        self._token = 0
        self._speed = _check_speed(speed)

        self._trace: Optional[Trace] = None
        self._views: List[LiveProcessView] = []
        self._views_by_pid: Dict[int, LiveProcessView] = {}
        self._index = 0
        self._status = PlaybackStatus.EMPTY
        self._results: Optional[Tuple[ResultRecord, ...]] = None
        self._system: Optional[SystemMetrics] = None

        self.on_tick = on_tick
        self.on_complete = on_complete

        if trace is not None:
            self.load(trace)

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def speed(self) -> float:
        return self._speed

    @property
    def interval(self) -> float:
        """
        Seconds between ticks at the current speed.
        """
        return 1.0 / self._speed

    # ---------- control surface ----------

    def load(self, trace: Trace) -> None:
        with self._lock:
            self._cancel()
            self._trace = trace
            self._rewind()
            logger.debug("playback loaded {} trace of length {}", trace.policy.value, len(trace))

    def start(self) -> bool:
        with self._lock:
            if self._status is not PlaybackStatus.READY:
                return False
            self._status = PlaybackStatus.RUNNING
            self._schedule()
            logger.debug("playback started at speed {}x", self._speed)
            return True

    def pause(self) -> bool:
        with self._lock:
            if self._status is not PlaybackStatus.RUNNING:
                return False
            self._cancel()
            self._status = PlaybackStatus.PAUSED
            logger.debug("playback paused at t={}", self._index)
            return True

    def resume(self) -> bool:
        with self._lock:
            if self._status is not PlaybackStatus.PAUSED:
                return False
            self._status = PlaybackStatus.RUNNING
            self._schedule()
            logger.debug("playback resumed at t={}", self._index)
            return True

    def reset(self) -> None:
        with self._lock:
            self._cancel()
            if self._trace is None:
                self._clear_state()
            else:
                self._rewind()
            logger.debug("playback reset to {}", self._status.value)

    def clear(self) -> None:
        """
        Drop the loaded trace entirely.
        """
        with self._lock:
            self._cancel()
            self._trace = None
            self._clear_state()

    def set_speed(self, multiplier: float) -> None:
        speed = _check_speed(multiplier)
        with self._lock:
            self._speed = speed
            if self._status is PlaybackStatus.RUNNING:
                # Re-arm at the new interval; the position is untouched.
                self._cancel()
                self._schedule()
            logger.debug("playback speed set to {}x", speed)

    def step(self) -> bool:
        """
        Apply exactly one tick synchronously. Only valid while no timer runs.
        """
        with self._lock:
            if self._status not in (PlaybackStatus.READY, PlaybackStatus.PAUSED):
                return False
            self._status = PlaybackStatus.PAUSED
            self._tick()
            return True

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the loaded trace has been played to the end.
        """
        return self._done.wait(timeout)

    # ---------- internals ----------

    def _clear_state(self) -> None:
        self._views = []
        self._views_by_pid = {}
        self._index = 0
        self._results = None
        self._system = None
        self._done.clear()
        self._status = PlaybackStatus.EMPTY

    def _rewind(self) -> None:
        self._clear_state()
        self._views = [LiveProcessView.from_spec(p) for p in self._trace.processes]
        self._views_by_pid = {v.pid: v for v in self._views}
        self._status = PlaybackStatus.READY

    def _cancel(self) -> None:
        self._token += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self) -> None:
        timer = threading.Timer(self.interval, self._on_timer, args=(self._token,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _on_timer(self, token: int) -> None:
        with self._lock:
            if token != self._token or self._status is not PlaybackStatus.RUNNING:
                return
            self._timer = None
            self._tick()
            if self._status is PlaybackStatus.RUNNING:
                self._schedule()

    def _tick(self) -> None:
        step = self._trace[self._index]
        if step.kind is StepKind.RUNNING:
            self._views_by_pid[step.pid].advance(step.time)
        self._index += 1

        if self._index >= len(self._trace):
            self._complete()

        snapshot = self._snapshot()
        if self.on_tick is not None:
            self.on_tick(snapshot)
        if self._status is PlaybackStatus.COMPLETED and self.on_complete is not None:
            self.on_complete(snapshot)

    def _complete(self) -> None:
        self._cancel()
        self._status = PlaybackStatus.COMPLETED
        results = compute_results(self._trace, self._trace.processes, self._views)
        self._results = tuple(results)
        self._system = compute_system_metrics(results, self._trace)
        self._done.set()
        logger.info(
            "playback completed: {} of {} processes finished in {} time units",
            self._system.completed,
            len(results),
            self._system.total_time,
        )

    def _snapshot(self) -> Snapshot:
        return Snapshot(
            time_index=self._index,
            views=tuple(replace(v) for v in self._views),
            status=self._status,
            trace_length=len(self._trace) if self._trace is not None else 0,
            results=self._results,
            system=self._system,
        )
