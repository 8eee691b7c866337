"""Per-zone tick: throughput, proposed resource deltas and local state drift.

A zone reads only the pre-step population pressure and maintenance level
and mutates only itself, so the per-zone stage can run in any order (or in
parallel) before the ledger reduction.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace

from quiteville.errors import InvalidState, require_finite, require_unit_interval
from quiteville.runtime.config import BIAS_KEYS, MIN_SATURATION_BIAS, CurveParams
from quiteville.runtime.curves import saturate
from quiteville.world.zones import ResourceVector, Zone


@dataclass(frozen=True, slots=True)
class ZoneContribution:
    zone_id: str
    throughput: float = 0.0
    output: ResourceVector = field(default_factory=ResourceVector)
    upkeep: ResourceVector = field(default_factory=ResourceVector)
    attraction: float = 0.0
    strain: float = 0.0
    decay: float = 0.0
    went_dormant: bool = False


def validate_zone(zone: Zone) -> None:
    require_unit_interval(f"{zone.zone_id}.condition", zone.condition)
    require_unit_interval(f"{zone.zone_id}.activity", zone.activity)
    require_unit_interval(f"{zone.zone_id}.priority", zone.priority)
    require_finite(f"{zone.zone_id}.base_throughput", zone.base_throughput)
    bias = require_finite(f"{zone.zone_id}.saturation_bias", zone.saturation_bias)
    if bias <= 0.0:
        raise InvalidState(f"{zone.zone_id}.saturation_bias must be > 0, got {bias!r}")
    unknown = set(zone.curve_modifiers) - set(BIAS_KEYS)
    if unknown:
        raise InvalidState(f"{zone.zone_id} has unknown curve modifiers {sorted(unknown)}")
    for key, delta in zone.curve_modifiers.items():
        require_finite(f"{zone.zone_id}.curve_modifiers[{key}]", delta, minimum=None)


def effective_saturation_bias(zone: Zone, params: CurveParams) -> float:
    return max(MIN_SATURATION_BIAS, zone.saturation_bias + params.saturation_bias_delta)


def zone_throughput(zone: Zone, params: CurveParams) -> float:
    """base x condition x activity x saturate(activity, bias); 0 when dormant."""

    if zone.dormant:
        return 0.0
    return (
        zone.base_throughput
        * zone.condition
        * zone.activity
        * saturate(zone.activity, effective_saturation_bias(zone, params))
    )


def _decay_condition(zone: Zone, *, maintenance: float, dt: float, params: CurveParams) -> None:
    rate = max(0.0, zone.decay.natural_rate + params.natural_decay_delta)
    if zone.activity > zone.decay.neglect_threshold and maintenance < params.low_maintenance_threshold:
        rate *= params.neglect_amplifier
    condition = zone.condition - rate * dt + params.condition_recovery_rate * dt
    zone.condition = min(1.0, max(0.0, condition))


def _update_activity(zone: Zone, *, population_pressure: float, dt: float, params: CurveParams) -> None:
    target = saturate(population_pressure, params.population_k) * zone.priority
    smoothing = 1.0 - math.pow(1.0 - params.activity_smoothing, dt)
    activity = zone.activity + (target - zone.activity) * smoothing
    zone.activity = min(1.0, max(0.0, activity))


def tick_zone(
    zone: Zone,
    population_pressure: float,
    dt: float,
    *,
    maintenance: float,
    params: CurveParams,
) -> ZoneContribution:
    population_pressure = require_finite("population_pressure", population_pressure)
    dt = require_finite("dt", dt)
    maintenance = require_finite("maintenance", maintenance)
    validate_zone(zone)

    if zone.dormant:
        return ZoneContribution(zone_id=zone.zone_id)

    throughput = zone_throughput(zone, params)
    contribution = ZoneContribution(
        zone_id=zone.zone_id,
        throughput=throughput,
        output=zone.outputs.scaled(throughput * dt),
        upkeep=zone.costs.scaled(throughput * dt),
        attraction=zone.population.attraction * zone.condition * dt,
        strain=zone.population.strain * throughput * dt,
        decay=zone.population.decay * dt,
    )

    _decay_condition(zone, maintenance=maintenance, dt=dt, params=params)
    _update_activity(zone, population_pressure=population_pressure, dt=dt, params=params)

    if zone.condition < params.dormancy_condition:
        zone.dormant = True
        return replace(contribution, went_dormant=True)
    return contribution


__all__ = [
    "ZoneContribution",
    "effective_saturation_bias",
    "tick_zone",
    "validate_zone",
    "zone_throughput",
]
