from __future__ import annotations

from typing import Iterable, List


class SchedulingError(ValueError):
    """
    Base class for everything the trace engine rejects before generating.
    """


class InvalidInputError(SchedulingError):
    """
    The process set itself is unusable (empty, bad times, bad priorities).

    All problems found in one pass are kept in ``problems`` so a caller can
    report them together.
    """

    def __init__(self, problems: Iterable[str]):
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems) or "invalid process set")


class InvalidParamError(SchedulingError):
    """
    A policy parameter is out of range (quantum, context switch time, speed).
    """
