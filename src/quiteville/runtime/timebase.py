"""Simulation timebase constants and the canonical per-tick phase order.

All cadences are expressed in seconds of simulated time.  One online tick
covers ``TICK_SECONDS``; offline catch-up works in hours because the
logarithmic time dilation is calibrated against hours away.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Iterable

TICK_SECONDS: float = 1.0
SECONDS_PER_MINUTE: int = 60
MINUTES_PER_HOUR: int = 60
SECONDS_PER_HOUR: int = SECONDS_PER_MINUTE * MINUTES_PER_HOUR
HOURS_PER_DAY: int = 24
SECONDS_PER_DAY: int = SECONDS_PER_HOUR * HOURS_PER_DAY


class Phase(Enum):
    """Stages executed, in order, by every online tick."""

    ZONES = auto()
    LEDGER = auto()
    MILESTONES = auto()
    CLOCK = auto()

    @classmethod
    def ordered(cls) -> Iterable["Phase"]:
        """Return phases in the mandated execution order."""

        return (cls.ZONES, cls.LEDGER, cls.MILESTONES, cls.CLOCK)


def seconds_for(*, days: float = 0, hours: float = 0, minutes: float = 0, seconds: float = 0) -> float:
    """Convert wall-clock units into simulated seconds."""

    return float(
        days * SECONDS_PER_DAY + hours * SECONDS_PER_HOUR + minutes * SECONDS_PER_MINUTE + seconds
    )


def ticks_for(*, tick_seconds: float = TICK_SECONDS, **units: float) -> int:
    """Number of whole ticks that fit into the given span."""

    return int(seconds_for(**units) // tick_seconds)


def seconds_to_hours(seconds: float) -> float:
    return float(seconds) / SECONDS_PER_HOUR


CLOCK = Phase.CLOCK
LEDGER = Phase.LEDGER
MILESTONES = Phase.MILESTONES
ZONES = Phase.ZONES


__all__ = [
    "CLOCK",
    "HOURS_PER_DAY",
    "LEDGER",
    "MILESTONES",
    "MINUTES_PER_HOUR",
    "Phase",
    "SECONDS_PER_DAY",
    "SECONDS_PER_HOUR",
    "SECONDS_PER_MINUTE",
    "TICK_SECONDS",
    "ZONES",
    "seconds_for",
    "seconds_to_hours",
    "ticks_for",
]
