from __future__ import annotations

import copy
import math

import pytest

from quiteville.errors import InvalidState
from quiteville.runtime.config import CurveBias, EconomyConfig, resolve_curve_params
from quiteville.runtime.zone_tick import tick_zone, zone_throughput
from quiteville.world.zones import (
    DecayModel,
    PopulationEffect,
    ResourceVector,
    ZoneCategory,
    ZoneTemplate,
    zone_from_template,
)

TEMPLATE = ZoneTemplate(
    template_id="mill",
    name="Mill",
    category=ZoneCategory.UTILITY,
    base_throughput=10.0,
    saturation_bias=1.0,
    outputs=ResourceVector(energy=1.0),
    costs=ResourceVector(maintenance=0.5),
    population=PopulationEffect(attraction=1.0, strain=0.1, decay=0.05),
    decay=DecayModel(natural_rate=0.01, neglect_threshold=0.7),
)


def _params(**overrides):
    return resolve_curve_params(EconomyConfig(**overrides))


def test_active_zone_contribution_and_drift() -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    contribution = tick_zone(zone, 0.0, 1.0, maintenance=1.0, params=_params())

    assert contribution.throughput == pytest.approx(10.0 * 0.5 * (0.5 / 1.5))
    assert contribution.output.energy == pytest.approx(1.6667, abs=1e-4)
    assert contribution.upkeep.maintenance == pytest.approx(0.8333, abs=1e-4)
    assert contribution.attraction == pytest.approx(1.0)
    assert contribution.strain == pytest.approx(0.16667, abs=1e-4)
    assert contribution.decay == pytest.approx(0.05)
    assert not contribution.went_dormant

    assert zone.condition == pytest.approx(0.99)
    # No pressure: activity eases toward zero at 10% per tick.
    assert zone.activity == pytest.approx(0.45)


def test_dormant_zone_contributes_nothing_and_does_not_decay() -> None:
    zone = zone_from_template(TEMPLATE)
    zone.condition = 0.05
    before = copy.deepcopy(zone)

    contribution = tick_zone(zone, 50.0, 1.0, maintenance=0.0, params=_params())

    assert contribution.throughput == 0.0
    assert contribution.output.is_zero() and contribution.upkeep.is_zero()
    assert contribution.attraction == contribution.strain == contribution.decay == 0.0
    assert zone == before


def test_neglect_amplifies_decay() -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    zone.activity = 0.8
    tick_zone(zone, 0.0, 1.0, maintenance=0.2, params=_params())
    assert zone.condition == pytest.approx(1.0 - 0.03)


def test_zone_goes_dormant_below_threshold() -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    zone.condition = 0.105
    contribution = tick_zone(zone, 0.0, 1.0, maintenance=1.0, params=_params())
    assert contribution.went_dormant
    assert zone.dormant
    assert zone.condition == pytest.approx(0.095)
    assert zone_throughput(zone, _params()) == 0.0


def test_activity_tracks_pressure_times_priority() -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    zone.activity = 0.0
    tick_zone(zone, 10.0, 1.0, maintenance=1.0, params=_params())
    assert zone.activity == pytest.approx(0.5 * 0.1)

    idle = zone_from_template(TEMPLATE, active=True)
    idle.priority = 0.0
    tick_zone(idle, 10.0, 1.0, maintenance=1.0, params=_params())
    assert idle.activity == pytest.approx(0.45)


def test_condition_recovery_is_a_policy_knob() -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    zone.condition = 0.5
    tick_zone(zone, 0.0, 1.0, maintenance=1.0, params=_params(condition_recovery_rate=0.02))
    assert zone.condition == pytest.approx(0.51)


def test_saturation_bias_delta_shifts_throughput() -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    bias = CurveBias()
    bias.add("saturation_bias", 1.0)
    params = resolve_curve_params(EconomyConfig(), bias)
    assert zone_throughput(zone, params) == pytest.approx(10.0 * 0.5 * (0.5 / 2.5))


@pytest.mark.parametrize(
    "pressure, dt, maintenance",
    [(math.nan, 1.0, 1.0), (-1.0, 1.0, 1.0), (0.0, -1.0, 1.0), (0.0, math.inf, 1.0), (0.0, 1.0, math.nan)],
)
def test_malformed_inputs_raise_without_mutation(pressure: float, dt: float, maintenance: float) -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    before = copy.deepcopy(zone)
    with pytest.raises(InvalidState):
        tick_zone(zone, pressure, dt, maintenance=maintenance, params=_params())
    assert zone == before


def test_out_of_range_zone_state_is_rejected() -> None:
    zone = zone_from_template(TEMPLATE, active=True)
    zone.activity = 1.5
    with pytest.raises(InvalidState):
        tick_zone(zone, 0.0, 1.0, maintenance=1.0, params=_params())
    assert zone.activity == 1.5
