"""
CPU scheduling trace engine.

Generates deterministic, time-indexed execution traces for classical
uniprocessor scheduling policies, derives per-process and system metrics
from them, and replays traces tick by tick under operator control.
"""

from loguru import logger

from .algorithms import ALGORITHMS, generate
from .errors import InvalidInputError, InvalidParamError, SchedulingError
from .metrics import compute_results, compute_system_metrics, evaluate
from .models import (
    LiveProcessView,
    Policy,
    ProcessSpec,
    ResultRecord,
    Step,
    StepKind,
    SystemMetrics,
    Trace,
)
from .playback import PlaybackEngine, PlaybackStatus, Snapshot

logger.disable(__name__)

__all__ = [
    "ALGORITHMS",
    "InvalidInputError",
    "InvalidParamError",
    "LiveProcessView",
    "PlaybackEngine",
    "PlaybackStatus",
    "Policy",
    "ProcessSpec",
    "ResultRecord",
    "SchedulingError",
    "Snapshot",
    "Step",
    "StepKind",
    "SystemMetrics",
    "Trace",
    "compute_results",
    "compute_system_metrics",
    "evaluate",
    "generate",
]
