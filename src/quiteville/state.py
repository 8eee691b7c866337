"""Structured world state for the Quiteville economy core.

A :class:`WorldState` is everything a save needs: balance configuration,
the resource ledger, the zone collection, milestone progress, the additive
curve-bias overlay, the simulation clock and the domain event log.  Static
data (zone templates, milestone definitions) travels with the world so a
restored save behaves identically.  Diagnostics (metrics, admin log) hang
off the world too but take no part in equality or snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .admin_log import AdminEventLog
from .runtime.config import CurveBias, EconomyConfig, TimewarpConfig
from .runtime.ledger import ResourceLedger
from .runtime.milestones import MilestoneDefinition, MilestoneState
from .runtime.telemetry import Metrics
from .world.events import DomainEventLog
from .world.zones import ZoneLedger, ZoneTemplate


@dataclass(slots=True)
class SimClock:
    """Discrete simulation time.

    ``accumulated`` carries the sub-tick remainder between online ``step``
    calls; ``last_output_estimate`` is the per-second output of the most
    recent tick and drives offline catch-up.
    """

    tick: int = 0
    last_simulated_time: float = 0.0
    accumulated: float = 0.0
    last_output_estimate: float = 0.0
    time_played_seconds: float = 0.0


@dataclass(slots=True)
class WorldState:
    economy_cfg: EconomyConfig = field(default_factory=EconomyConfig)
    timewarp_cfg: TimewarpConfig = field(default_factory=TimewarpConfig)
    ledger: ResourceLedger = field(default_factory=ResourceLedger)
    zones: ZoneLedger = field(default_factory=ZoneLedger)
    templates: Dict[str, ZoneTemplate] = field(default_factory=dict)
    milestones: tuple[MilestoneDefinition, ...] = ()
    milestone_state: MilestoneState = field(default_factory=MilestoneState)
    curve_bias: CurveBias = field(default_factory=CurveBias)
    clock: SimClock = field(default_factory=SimClock)
    event_log: DomainEventLog = field(default_factory=DomainEventLog)
    metrics: Metrics = field(default_factory=Metrics, compare=False, repr=False)
    admin_log: AdminEventLog = field(default_factory=AdminEventLog, compare=False, repr=False)


__all__ = ["SimClock", "WorldState"]
