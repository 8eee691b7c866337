from __future__ import annotations

import copy
import math

import pytest

from quiteville import (
    EventKind,
    InvalidState,
    TimewarpConfig,
    load_milestones,
    new_world,
    resume,
    snapshot_to_json,
    snapshot_world,
    step,
)
from quiteville.runtime.timebase import SECONDS_PER_HOUR, seconds_for
from quiteville.simulation.engine import StepMode


def _world(milestones=()):
    return new_world(milestones=milestones)


def test_gap_below_one_tick_is_a_noop() -> None:
    world = _world()
    before = copy.deepcopy(world)
    report = resume(world, 0.5)
    assert report.mode is StepMode.NOOP
    assert world == before


def test_short_gap_replays_exact_ticks() -> None:
    world = _world()
    stepped = copy.deepcopy(world)

    report = resume(world, 10.7)
    for _ in range(10):
        step(stepped, 1.0)

    assert report.mode is StepMode.REPLAY
    assert report.ticks_run == 10
    assert world == stepped


def test_seventy_two_hours_away_uses_logarithmic_gain() -> None:
    world = _world()
    world.clock.last_output_estimate = 8.0
    energy = world.ledger.energy
    attractiveness = world.ledger.attractiveness
    marker = world.clock.last_simulated_time

    report = resume(world, seconds_for(hours=72))

    assert report.mode is StepMode.OFFLINE
    assert report.ticks_run == 0
    assert report.offline_gain == pytest.approx(34.0, abs=2.0)
    assert report.offline_gain == pytest.approx(8.0 * math.log(73.0))
    assert world.ledger.energy == pytest.approx(energy + 0.5 * report.offline_gain)
    assert world.ledger.attractiveness == pytest.approx(attractiveness + 0.2 * report.offline_gain)
    assert world.clock.last_simulated_time == pytest.approx(marker + 72 * SECONDS_PER_HOUR)
    kinds = [event.kind for event in report.events]
    assert kinds == [EventKind.OFFLINE_CATCH_UP]
    assert "72.0 hours" in report.events[0].message


def test_overlong_gap_is_clamped_not_rejected() -> None:
    world = _world()
    world.clock.last_output_estimate = 8.0

    report = resume(world, seconds_for(days=30))

    assert report.offline_gain == pytest.approx(8.0 * math.log(73.0))
    assert report.applied_seconds == pytest.approx(72 * SECONDS_PER_HOUR)
    clamped = [event for event in report.events if event.kind is EventKind.OFFLINE_GAP_CLAMPED]
    assert len(clamped) == 1
    assert clamped[0].get("applied_hours") == pytest.approx(72.0)
    assert world.admin_log.get_recent(event_type="OFFLINE_GAP_CLAMPED")
    assert world.metrics.count("offline.clamped") == 1


def test_gap_past_long_threshold_skips_replay() -> None:
    world = new_world(milestones=(), timewarp_cfg=TimewarpConfig(long_gap_seconds=60.0))
    world.clock.last_output_estimate = 2.0
    tick = world.clock.tick

    report = resume(world, 120.0)

    assert report.mode is StepMode.OFFLINE
    assert world.clock.tick == tick
    assert report.offline_gain == pytest.approx(2.0 * math.log(1.0 + 120.0 / SECONDS_PER_HOUR))


def test_milestones_are_evaluated_once_after_the_gain() -> None:
    milestones = load_milestones(
        [{"id": "stockpile", "conditions": [{"type": "resource_min", "resource": "energy", "value": 10.0}]}]
    )
    world = _world(milestones)
    world.clock.last_output_estimate = 8.0

    report = resume(world, seconds_for(hours=72))

    assert report.fired == ("stockpile",)
    assert [e.kind for e in report.events] == [EventKind.OFFLINE_CATCH_UP, EventKind.MILESTONE_FIRED]


@pytest.mark.parametrize("elapsed", [-1.0, math.nan, "soon"])
def test_malformed_gap_is_rejected(elapsed: float) -> None:
    world = _world()
    before = copy.deepcopy(world)
    with pytest.raises(InvalidState):
        resume(world, elapsed)
    assert world == before


def test_infinite_gap_is_clamped_to_the_cap() -> None:
    world = _world()
    world.clock.last_output_estimate = 8.0

    report = resume(world, math.inf)

    assert report.mode is StepMode.OFFLINE
    assert report.offline_gain == pytest.approx(34.3, abs=0.1)
    assert report.applied_seconds == pytest.approx(72 * SECONDS_PER_HOUR)
    clamped = [event for event in report.events if event.kind is EventKind.OFFLINE_GAP_CLAMPED]
    assert clamped[0].get("requested_hours") is None
    assert clamped[0].get("applied_hours") == pytest.approx(72.0)
    # the world still serialises after an unbounded gap
    assert snapshot_to_json(snapshot_world(world))


def test_pressure_grows_with_hours_away() -> None:
    world = _world()
    world.clock.last_output_estimate = 8.0
    pressure = world.ledger.population_pressure

    report = resume(world, seconds_for(hours=10))

    expected = 10.0 * world.timewarp_cfg.offline_pressure_rate * world.ledger.attractiveness
    assert expected > 0.0
    assert world.ledger.population_pressure == pytest.approx(pressure + expected)
    assert report.events[-1].get("pressure_growth") == pytest.approx(expected)


def test_offline_pressure_growth_is_not_capped() -> None:
    cfg = TimewarpConfig(offline_pressure_rate=1_000.0)
    world = new_world(milestones=(), timewarp_cfg=cfg)
    world.clock.last_output_estimate = 8.0
    world.ledger.attractiveness = 50.0

    resume(world, seconds_for(hours=72))

    assert world.ledger.population_pressure > 1_000_000.0


def test_pressure_rate_zero_leaves_pressure_alone() -> None:
    world = new_world(milestones=(), timewarp_cfg=TimewarpConfig(offline_pressure_rate=0.0))
    world.clock.last_output_estimate = 8.0
    pressure = world.ledger.population_pressure

    resume(world, seconds_for(hours=5))

    assert world.ledger.population_pressure == pressure
