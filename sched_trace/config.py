from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

LOG_LEVEL_ENV = "SCHED_TRACE_LOG_LEVEL"


@dataclass(frozen=True)
class SimulationConfig:
    """
    Parameters for one simulation run.

    Values are layered: defaults, then the environment, then a scenario
    file, then command-line flags. Range checks happen when the trace is
    generated or the playback speed is applied, not here.
    """

    policy: str = "fcfs"
    quantum: Optional[int] = 2
    context_switch_time: float = 0
    speed: float = 1.0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SimulationConfig":
        environ = os.environ if environ is None else environ
        config = cls()
        level = environ.get(LOG_LEVEL_ENV)
        if level:
            config = replace(config, log_level=level.upper())
        return config

    def merged(self, overrides: Mapping[str, Any]) -> "SimulationConfig":
        """
        Return a copy with every known, non-None key of ``overrides`` applied.
        """
        known = {f.name for f in fields(self)}
        changes = {k: v for k, v in overrides.items() if k in known and v is not None}
        return replace(self, **changes)
