"""Global resource ledger and the per-tick reduction of zone contributions.

:func:`apply_contributions` is a pure function of ``(ledger, contributions,
dt, params)``: it never mutates its inputs, reads no wall clock and keeps no
module state.  The returned :class:`LedgerStepResult` carries the proposed
new ledger plus the bookkeeping the engine turns into events and metrics.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from hashlib import sha256
from typing import Any, Iterable

from quiteville.errors import require_finite
from quiteville.runtime.config import CurveParams, effective_curve_params
from quiteville.runtime.curves import (
    effective_population,
    energy_cost,
    maintenance_cost,
    resource_multiplier,
    saturate,
)
from quiteville.runtime.zone_tick import ZoneContribution, zone_throughput
from quiteville.world.zones import RESOURCE_NAMES, ResourceVector

LEDGER_FIELDS: tuple[str, ...] = RESOURCE_NAMES + ("population_pressure",)


@dataclass(slots=True)
class ResourceLedger:
    energy: float = 0.0
    maintenance: float = 0.0
    stability: float = 0.0
    attractiveness: float = 0.0
    population_pressure: float = 0.0

    def get(self, name: str) -> float:
        if name not in LEDGER_FIELDS:
            raise KeyError(name)
        return getattr(self, name)

    def validate(self) -> None:
        for name in LEDGER_FIELDS:
            require_finite(f"ledger.{name}", getattr(self, name))

    def signature(self) -> str:
        canonical = {name: round(getattr(self, name), 9) for name in LEDGER_FIELDS}
        payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
        return sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class LedgerStepResult:
    ledger: ResourceLedger
    starved: tuple[str, ...]
    final_output: ResourceVector
    upkeep: ResourceVector
    effective_population: float
    energy_cost: float
    maintenance_cost: float
    output_rate: float


def _sum_vectors(vectors: Iterable[ResourceVector]) -> ResourceVector:
    total = ResourceVector()
    for vector in vectors:
        total = total + vector
    return total


def apply_contributions(
    ledger: ResourceLedger,
    contributions: Iterable[ZoneContribution],
    dt: float,
    *,
    params: CurveParams,
) -> LedgerStepResult:
    dt = require_finite("dt", dt)
    ledger.validate()
    contributions = list(contributions)

    summed_output = _sum_vectors(c.output for c in contributions)
    summed_upkeep = _sum_vectors(c.upkeep for c in contributions)
    attraction = sum(c.attraction for c in contributions)
    strain = sum(c.strain for c in contributions)
    decay = sum(c.decay for c in contributions)

    pressure = ledger.population_pressure
    eff_pop = effective_population(pressure, params.population_k)
    multiplier = resource_multiplier(
        ledger.energy, ledger.maintenance, ledger.stability, floor=params.factor_floor
    )
    final_output = summed_output.scaled(multiplier)

    e_cost = energy_cost(pressure, params.energy_cost) * dt
    m_cost = maintenance_cost(eff_pop, params.maintenance_cost) * dt
    drift = params.stockpile_decay * dt

    proposed = {
        "energy": ledger.energy + final_output.energy - summed_upkeep.energy - e_cost,
        "maintenance": ledger.maintenance + final_output.maintenance - summed_upkeep.maintenance - m_cost,
        "stability": ledger.stability * (1.0 - drift) + final_output.stability - summed_upkeep.stability,
        "attractiveness": ledger.attractiveness * (1.0 - drift)
        + final_output.attractiveness
        - summed_upkeep.attractiveness,
    }
    growth = attraction * (1.0 + saturate(ledger.attractiveness, params.attractiveness_k))
    proposed["population_pressure"] = pressure + growth - strain - decay

    starved = tuple(name for name in LEDGER_FIELDS if proposed[name] < 0.0)
    new_ledger = replace(ledger, **{name: max(0.0, proposed[name]) for name in LEDGER_FIELDS})

    output_rate = (final_output.total() / dt) if dt > 0.0 else 0.0
    return LedgerStepResult(
        ledger=new_ledger,
        starved=starved,
        final_output=final_output,
        upkeep=summed_upkeep,
        effective_population=eff_pop,
        energy_cost=e_cost,
        maintenance_cost=m_cost,
        output_rate=output_rate,
    )


def estimate_output(world: Any) -> float:
    """Current output per second, as the next tick would produce it.

    Reads the world without mutating it.
    """

    params = effective_curve_params(world)
    ledger = world.ledger
    raw = 0.0
    for zone in world.zones.values():
        raw += zone.outputs.total() * zone_throughput(zone, params)
    return raw * resource_multiplier(
        ledger.energy, ledger.maintenance, ledger.stability, floor=params.factor_floor
    )


__all__ = [
    "LEDGER_FIELDS",
    "LedgerStepResult",
    "ResourceLedger",
    "apply_contributions",
    "estimate_output",
]
