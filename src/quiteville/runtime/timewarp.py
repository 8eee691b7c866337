"""Offline catch-up for a town resumed after time away.

Short gaps are replayed tick by tick, which is exact.  Long gaps are never
replayed: a single logarithmic gain, ``last_output_estimate x ln(hours + 1)``,
is split across the ledger and population pressure grows with the hours
away.  Gaps longer than ``offline_cap_hours`` are
clamped rather than rejected.

Milestones are evaluated once against the post-gain state; a threshold that
would have been crossed partway through the absence fires at resume time.
"""

from __future__ import annotations

import math
from typing import Any

from quiteville.admin_log import ensure_admin_log
from quiteville.errors import InvalidState, require_duration, require_finite
from quiteville.runtime.config import ensure_timewarp_config
from quiteville.runtime.curves import offline_gain
from quiteville.runtime.milestones import evaluate_milestones
from quiteville.runtime.telemetry import ensure_metrics
from quiteville.runtime.timebase import SECONDS_PER_HOUR, seconds_to_hours
from quiteville.simulation.engine import (
    StepMode,
    StepReport,
    merge_reports,
    run_validated_tick,
    validate_world,
)
from quiteville.world.events import EventKind
from quiteville.world.zones import RESOURCE_NAMES


def _validate_split(split: dict[str, float]) -> None:
    for name, share in split.items():
        if name not in RESOURCE_NAMES:
            raise InvalidState(f"offline_split names unknown resource {name!r}")
        require_finite(f"offline_split[{name}]", share)


def _format_hours(hours: float) -> str:
    if hours < 1.0:
        return f"{hours * 60.0:.0f} minutes"
    return f"{hours:.1f} hours"


def apply_offline_gain(world: Any, elapsed_seconds: float) -> StepReport:
    """Approximate ``elapsed_seconds`` away with one logarithmic gain.

    Population pressure also grows once, in proportion to the clamped hours
    and the post-gain attractiveness.  The growth is not capped.
    """

    cfg = ensure_timewarp_config(world)
    clock = world.clock
    cursor = world.event_log.next_seq
    tick = clock.tick
    metrics = ensure_metrics(world)
    admin = ensure_admin_log(world)

    requested_hours = seconds_to_hours(elapsed_seconds)
    applied_hours = min(requested_hours, cfg.offline_cap_hours)
    if requested_hours > cfg.offline_cap_hours:
        metrics.inc("offline.clamped")
        admin.log_gap_clamped(tick=tick, requested_hours=requested_hours, applied_hours=applied_hours)
        world.event_log.emit(
            EventKind.OFFLINE_GAP_CLAMPED,
            tick=tick,
            # inf does not survive a JSON snapshot
            payload={
                "requested_hours": requested_hours if math.isfinite(requested_hours) else None,
                "applied_hours": applied_hours,
            },
            message=f"Only the last {_format_hours(applied_hours)} away count toward catch-up.",
        )

    gain = offline_gain(clock.last_output_estimate, applied_hours)
    ledger = world.ledger
    for name in sorted(cfg.offline_split):
        setattr(ledger, name, ledger.get(name) + gain * cfg.offline_split[name])
    pressure_growth = applied_hours * cfg.offline_pressure_rate * ledger.attractiveness
    ledger.population_pressure += pressure_growth

    applied_seconds = applied_hours * SECONDS_PER_HOUR
    clock.last_simulated_time += applied_seconds
    clock.time_played_seconds += applied_seconds
    metrics.inc("offline.catch_ups")
    admin.log_offline_approximation(
        tick=tick,
        elapsed_seconds=elapsed_seconds,
        applied_hours=applied_hours,
        output_estimate=clock.last_output_estimate,
        gain=gain,
    )
    world.event_log.emit(
        EventKind.OFFLINE_CATCH_UP,
        tick=tick,
        payload={"hours": applied_hours, "gain": gain, "pressure_growth": pressure_growth},
        message=f"While you were away for {_format_hours(applied_hours)}, the town gathered {gain:.1f}.",
    )
    fired = evaluate_milestones(world, tick=tick)
    return StepReport(
        mode=StepMode.OFFLINE,
        events=tuple(world.event_log.since(cursor)),
        fired=tuple(item.milestone_id for item in fired),
        offline_gain=gain,
        applied_seconds=applied_seconds,
    )


def resume(world: Any, elapsed_seconds: float) -> StepReport:
    """Bring the world up to date after ``elapsed_seconds`` of absence.

    * below one tick: nothing happens
    * short gaps: replay whole ticks (the remainder is dropped)
    * long gaps, including ``inf``: logarithmic approximation, clamped to
      the offline cap
    """

    try:
        elapsed_seconds = require_duration("elapsed_seconds", elapsed_seconds)
        tick_seconds = validate_world(world)
        cfg = ensure_timewarp_config(world)
        _validate_split(cfg.offline_split)
        cap = require_finite("offline_cap_hours", cfg.offline_cap_hours)
        require_finite("offline_pressure_rate", cfg.offline_pressure_rate)
    except InvalidState as exc:
        ensure_admin_log(world).log_rejected_step(tick=world.clock.tick, reason=str(exc))
        raise

    if elapsed_seconds < tick_seconds:
        return StepReport(mode=StepMode.NOOP)

    if elapsed_seconds < cfg.long_gap_seconds:
        ticks = int(elapsed_seconds // tick_seconds)
        if ticks <= cfg.max_replay_ticks:
            reports = [run_validated_tick(world, tick_seconds) for _ in range(ticks)]
            return merge_reports(StepMode.REPLAY, reports)
    if cap <= 0.0:
        return StepReport(mode=StepMode.NOOP)
    return apply_offline_gain(world, elapsed_seconds)


__all__ = ["apply_offline_gain", "resume"]
