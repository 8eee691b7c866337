"""Saturating and dampening curves shared by every economy component.

Every function here is pure and deterministic.  The curves are the reason
the town economy cannot spiral: each one is concave, passes through the
origin and approaches its ceiling only asymptotically, so doubling an input
never more than doubles the output.

Reference values (base 10, saturation constant 10):

* P=5, E=M=S=1      -> Output ~= 0.526
* P=200, E=M=S=50   -> Output ~= 8.14
* 72 hours offline at Output 8 -> gain ~= 34.3 (linear would be 576)
"""

from __future__ import annotations

import math
from typing import Callable

from quiteville.errors import InvalidState, require_finite

DEFAULT_POPULATION_K: float = 10.0

ENERGY = "energy"
MAINTENANCE = "maintenance"
STABILITY = "stability"


def saturate(x: float, k: float) -> float:
    """``x / (x + k)``: bounded in [0, 1), increasing, concave."""

    x = require_finite("x", x)
    k = require_finite("k", k)
    if k <= 0.0:
        raise InvalidState(f"saturation constant must be > 0, got {k!r}")
    if x == 0.0:
        return 0.0
    return x / (x + k)


def energy_factor(energy: float) -> float:
    """``E / (E + 1)``."""

    energy = require_finite("energy", energy)
    return energy / (energy + 1.0)


def maintenance_factor(maintenance: float) -> float:
    """``sqrt(M) / (sqrt(M) + 1)``."""

    root = math.sqrt(require_finite("maintenance", maintenance))
    return root / (root + 1.0)


def stability_factor(stability: float) -> float:
    """``ln(S + 1) / ln(S + 2)``."""

    stability = require_finite("stability", stability)
    return math.log(stability + 1.0) / math.log(stability + 2.0)


_FACTORS: dict[str, Callable[[float], float]] = {
    ENERGY: energy_factor,
    MAINTENANCE: maintenance_factor,
    STABILITY: stability_factor,
}


def sublinear_factor(resource: str, value: float, *, floor: float = 0.0) -> float:
    """Diminishing-returns factor for ``resource``.

    ``floor`` lifts the factor for a starved stockpile so zones still
    trickle; with the default of 0 every factor is strictly increasing.
    """

    try:
        fn = _FACTORS[resource]
    except KeyError as exc:
        raise KeyError(f"No dampening curve for resource {resource!r}") from exc
    return max(float(floor), fn(value))


def time_dilate(hours: float) -> float:
    """Offline time scaling ``ln(hours + 1)``."""

    return math.log(require_finite("hours", hours) + 1.0)


def effective_population(pressure: float, k: float = DEFAULT_POPULATION_K) -> float:
    return saturate(pressure, k)


def resource_multiplier(energy: float, maintenance: float, stability: float, *, floor: float = 0.0) -> float:
    return (
        sublinear_factor(ENERGY, energy, floor=floor)
        * sublinear_factor(MAINTENANCE, maintenance, floor=floor)
        * sublinear_factor(STABILITY, stability, floor=floor)
    )


def composed_output(
    base: float,
    pressure: float,
    energy: float,
    maintenance: float,
    stability: float,
    *,
    k_pop: float = DEFAULT_POPULATION_K,
    floor: float = 0.0,
) -> float:
    """Documented Output formula: base x EffPop x fE x fM x fS."""

    base = require_finite("base", base)
    return (
        base
        * effective_population(pressure, k_pop)
        * resource_multiplier(energy, maintenance, stability, floor=floor)
    )


def maintenance_cost(effective_pop: float, beta: float) -> float:
    """Quadratic upkeep ``beta * EffPop**2``."""

    effective_pop = require_finite("effective_pop", effective_pop)
    return require_finite("beta", beta) * effective_pop * effective_pop


def energy_cost(pressure: float, alpha: float) -> float:
    return require_finite("alpha", alpha) * require_finite("pressure", pressure)


def offline_gain(output: float, hours: float) -> float:
    """``Output * ln(hours + 1)``."""

    return require_finite("output", output) * time_dilate(hours)


def doubling_ratio(fn: Callable[[float], float], x: float) -> float:
    """Return ``fn(2x) / fn(x)``; must never exceed 2 for an exposed curve."""

    base = fn(x)
    if base == 0.0:
        return 0.0 if fn(2.0 * x) == 0.0 else math.inf
    return fn(2.0 * x) / base


__all__ = [
    "DEFAULT_POPULATION_K",
    "ENERGY",
    "MAINTENANCE",
    "STABILITY",
    "composed_output",
    "doubling_ratio",
    "effective_population",
    "energy_cost",
    "energy_factor",
    "maintenance_cost",
    "maintenance_factor",
    "offline_gain",
    "resource_multiplier",
    "saturate",
    "stability_factor",
    "sublinear_factor",
    "time_dilate",
]
