"""Online tick orchestration for the Quiteville economy.

Each tick runs the phases of :class:`~quiteville.runtime.timebase.Phase` in
order: every zone computes its contribution from the pre-tick pressure, the
ledger folds the contributions into new resource totals, milestones inspect
the result and the clock advances by exactly one tick duration.

The whole world is validated before the first mutation, so a tick that
raises :class:`~quiteville.errors.InvalidState` leaves the world untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List

from ..admin_log import ensure_admin_log
from ..errors import InvalidState, require_finite
from ..runtime.config import effective_curve_params, ensure_economy_config
from ..runtime.ledger import LEDGER_FIELDS, LedgerStepResult, apply_contributions
from ..runtime.milestones import FiredMilestone, evaluate_milestones
from ..runtime.telemetry import ensure_metrics
from ..runtime.timebase import Phase
from ..runtime.zone_tick import ZoneContribution, tick_zone, validate_zone
from ..world.events import DomainEvent, EventKind


class StepMode(str, Enum):
    NOOP = "noop"
    ONLINE = "online"
    REPLAY = "replay"
    OFFLINE = "offline"


@dataclass(frozen=True, slots=True)
class StepReport:
    mode: StepMode
    ticks_run: int = 0
    events: tuple[DomainEvent, ...] = ()
    starved: tuple[str, ...] = ()
    fired: tuple[str, ...] = ()
    offline_gain: float = 0.0
    applied_seconds: float = 0.0


def validate_world(world: Any) -> float:
    """Raise :class:`InvalidState` for any malformed piece of the world.

    Returns the validated tick duration in seconds.
    """

    cfg = ensure_economy_config(world)
    tick_seconds = require_finite("tick_seconds", cfg.tick_seconds)
    if tick_seconds <= 0.0:
        raise InvalidState(f"tick_seconds must be > 0, got {tick_seconds!r}")
    require_finite("population_k", cfg.population_k)
    if cfg.population_k <= 0.0:
        raise InvalidState(f"population_k must be > 0, got {cfg.population_k!r}")
    world.ledger.validate()
    for zone in world.zones.values():
        validate_zone(zone)
    clock = world.clock
    require_finite("clock.accumulated", clock.accumulated)
    require_finite("clock.last_simulated_time", clock.last_simulated_time)
    require_finite("clock.last_output_estimate", clock.last_output_estimate)
    return tick_seconds


def _emit_starvation(world: Any, result: LedgerStepResult, *, tick: int) -> None:
    metrics = ensure_metrics(world)
    for name in result.starved:
        metrics.inc(f"starvation.{name}")
        world.event_log.emit(
            EventKind.RESOURCE_STARVED,
            tick=tick,
            subject_id=name,
            message=f"The town ran short of {name.replace('_', ' ')}.",
        )


def _emit_dormancy(world: Any, contributions: Iterable[ZoneContribution], *, tick: int) -> None:
    for contribution in contributions:
        if not contribution.went_dormant:
            continue
        zone = world.zones[contribution.zone_id]
        ensure_metrics(world).inc("zones.went_dormant")
        world.event_log.emit(
            EventKind.ZONE_DORMANT,
            tick=tick,
            subject_id=zone.zone_id,
            payload={"condition": zone.condition},
            message=f"{zone.name} has fallen quiet.",
        )


def _record_gauges(world: Any, result: LedgerStepResult, contributions: Iterable[ZoneContribution]) -> None:
    metrics = ensure_metrics(world)
    metrics.inc("ticks")
    for name in LEDGER_FIELDS:
        metrics.set_gauge(f"resources.{name}", world.ledger.get(name))
    metrics.set_gauge("output_estimate", result.output_rate)
    metrics.set_gauge("effective_population", result.effective_population)
    for contribution in contributions:
        if contribution.throughput > 0.0:
            metrics.throughput.record(contribution.zone_id, contribution.throughput)


def run_validated_tick(world: Any, dt: float) -> StepReport:
    params = effective_curve_params(world)
    cursor = world.event_log.next_seq
    tick = world.clock.tick + 1
    contributions: List[ZoneContribution] = []
    result: LedgerStepResult | None = None
    fired: List[FiredMilestone] = []

    for phase in Phase.ordered():
        if phase is Phase.ZONES:
            pressure = world.ledger.population_pressure
            maintenance = world.ledger.maintenance
            contributions = [
                tick_zone(world.zones[zone_id], pressure, dt, maintenance=maintenance, params=params)
                for zone_id in sorted(world.zones)
            ]
            _emit_dormancy(world, contributions, tick=tick)
        elif phase is Phase.LEDGER:
            result = apply_contributions(world.ledger, contributions, dt, params=params)
            world.ledger = result.ledger
            _emit_starvation(world, result, tick=tick)
        elif phase is Phase.MILESTONES:
            # time_played conditions see this tick
            world.clock.time_played_seconds += dt
            fired = evaluate_milestones(world, tick=tick)
        elif phase is Phase.CLOCK:
            clock = world.clock
            clock.tick = tick
            clock.last_simulated_time += dt
            clock.last_output_estimate = result.output_rate

    _record_gauges(world, result, contributions)
    return StepReport(
        mode=StepMode.ONLINE,
        ticks_run=1,
        events=tuple(world.event_log.since(cursor)),
        starved=result.starved,
        fired=tuple(item.milestone_id for item in fired),
        applied_seconds=dt,
    )


def run_tick(world: Any) -> StepReport:
    """Advance the world by exactly one tick."""

    try:
        dt = validate_world(world)
    except InvalidState as exc:
        ensure_admin_log(world).log_rejected_step(tick=world.clock.tick, reason=str(exc))
        raise
    return run_validated_tick(world, dt)


def merge_reports(mode: StepMode, reports: Iterable[StepReport]) -> StepReport:
    reports = list(reports)
    starved: List[str] = []
    for report in reports:
        starved.extend(name for name in report.starved if name not in starved)
    return StepReport(
        mode=mode,
        ticks_run=sum(r.ticks_run for r in reports),
        events=tuple(event for r in reports for event in r.events),
        starved=tuple(starved),
        fired=tuple(mid for r in reports for mid in r.fired),
        offline_gain=sum(r.offline_gain for r in reports),
        applied_seconds=sum(r.applied_seconds for r in reports),
    )


def step(world: Any, dt: float) -> StepReport:
    """Online entry point: feed ``dt`` seconds and run every whole tick that fits.

    Sub-tick remainders carry over to the next call.
    """

    try:
        dt = require_finite("dt", dt)
        tick_seconds = validate_world(world)
    except InvalidState as exc:
        ensure_admin_log(world).log_rejected_step(tick=world.clock.tick, reason=str(exc))
        raise

    clock = world.clock
    clock.accumulated += dt
    reports: List[StepReport] = []
    while clock.accumulated >= tick_seconds:
        clock.accumulated -= tick_seconds
        reports.append(run_validated_tick(world, tick_seconds))
    return merge_reports(StepMode.ONLINE, reports)


__all__ = [
    "StepMode",
    "StepReport",
    "merge_reports",
    "run_tick",
    "run_validated_tick",
    "step",
    "validate_world",
]
