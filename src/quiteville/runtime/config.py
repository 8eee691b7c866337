"""Balance configuration and the curve-bias overlay.

Base curve parameters live in :class:`EconomyConfig` and never change during
play.  Milestones and active zones only ever contribute additive deltas
through :class:`CurveBias`; :func:`resolve_curve_params` folds both into the
immutable :class:`CurveParams` used for a single tick.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from hashlib import sha256
from typing import Any, Mapping

from quiteville.errors import InvalidState, require_finite

BIAS_POPULATION_K = "population_k"
BIAS_ENERGY_COST = "energy_cost"
BIAS_MAINTENANCE_COST = "maintenance_cost"
BIAS_NATURAL_DECAY = "natural_decay"
BIAS_SATURATION = "saturation_bias"
BIAS_ACTIVITY_SMOOTHING = "activity_smoothing"
BIAS_STOCKPILE_DECAY = "stockpile_decay"

BIAS_KEYS: tuple[str, ...] = (
    BIAS_ACTIVITY_SMOOTHING,
    BIAS_ENERGY_COST,
    BIAS_MAINTENANCE_COST,
    BIAS_NATURAL_DECAY,
    BIAS_POPULATION_K,
    BIAS_SATURATION,
    BIAS_STOCKPILE_DECAY,
)

MIN_POPULATION_K: float = 0.1
MIN_SATURATION_BIAS: float = 0.01


@dataclass(slots=True)
class EconomyConfig:
    tick_seconds: float = 1.0
    population_k: float = 10.0
    energy_cost_coefficient: float = 0.001
    maintenance_cost_coefficient: float = 0.02
    factor_floor: float = 0.0
    stockpile_decay: float = 0.001
    attractiveness_k: float = 1.0
    activity_smoothing: float = 0.1
    low_maintenance_threshold: float = 0.5
    neglect_amplifier: float = 3.0
    # 0.0 keeps condition recovery strictly command driven.
    condition_recovery_rate: float = 0.0
    dormancy_condition: float = 0.1
    revive_condition: float = 0.1
    starting_energy: float = 1.0
    starting_maintenance: float = 1.0
    starting_stability: float = 1.0
    starting_attractiveness: float = 0.5
    starting_pressure: float = 0.0
    event_log_capacity: int = 500


@dataclass(slots=True)
class TimewarpConfig:
    max_replay_ticks: int = 3_600
    long_gap_seconds: float = 3_600.0
    offline_cap_hours: float = 72.0
    # pressure gained per clamped hour away, per unit of attractiveness
    offline_pressure_rate: float = 0.1
    offline_split: dict[str, float] = field(
        default_factory=lambda: {"energy": 0.5, "attractiveness": 0.2}
    )


@dataclass(slots=True)
class CurveBias:
    """Named additive deltas layered over the base curve parameters."""

    deltas: dict[str, float] = field(default_factory=dict)

    def get(self, key: str) -> float:
        return float(self.deltas.get(key, 0.0))

    def add(self, key: str, delta: float) -> float:
        if key not in BIAS_KEYS:
            raise InvalidState(f"Unknown curve bias term {key!r}")
        delta = require_finite(f"bias[{key}]", delta, minimum=None)
        self.deltas[key] = self.get(key) + delta
        return self.deltas[key]

    def merged(self, modifiers: Mapping[str, float]) -> "CurveBias":
        combined = CurveBias(deltas=dict(self.deltas))
        for key, delta in sorted(modifiers.items()):
            combined.add(key, delta)
        return combined

    def signature(self) -> str:
        payload = json.dumps(
            {k: round(v, 9) for k, v in sorted(self.deltas.items())},
            sort_keys=True,
            separators=(",", ":"),
        )
        return sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CurveParams:
    population_k: float
    energy_cost: float
    maintenance_cost: float
    natural_decay_delta: float
    saturation_bias_delta: float
    activity_smoothing: float
    stockpile_decay: float
    attractiveness_k: float
    factor_floor: float
    low_maintenance_threshold: float
    neglect_amplifier: float
    condition_recovery_rate: float
    dormancy_condition: float


def resolve_curve_params(cfg: EconomyConfig, bias: CurveBias | None = None) -> CurveParams:
    bias = bias or CurveBias()
    return CurveParams(
        population_k=max(MIN_POPULATION_K, cfg.population_k + bias.get(BIAS_POPULATION_K)),
        energy_cost=max(0.0, cfg.energy_cost_coefficient + bias.get(BIAS_ENERGY_COST)),
        maintenance_cost=max(0.0, cfg.maintenance_cost_coefficient + bias.get(BIAS_MAINTENANCE_COST)),
        natural_decay_delta=bias.get(BIAS_NATURAL_DECAY),
        saturation_bias_delta=bias.get(BIAS_SATURATION),
        activity_smoothing=min(1.0, max(0.0, cfg.activity_smoothing + bias.get(BIAS_ACTIVITY_SMOOTHING))),
        stockpile_decay=min(1.0, max(0.0, cfg.stockpile_decay + bias.get(BIAS_STOCKPILE_DECAY))),
        attractiveness_k=max(MIN_POPULATION_K, cfg.attractiveness_k),
        factor_floor=min(0.99, max(0.0, cfg.factor_floor)),
        low_maintenance_threshold=cfg.low_maintenance_threshold,
        neglect_amplifier=max(1.0, cfg.neglect_amplifier),
        condition_recovery_rate=max(0.0, cfg.condition_recovery_rate),
        dormancy_condition=min(1.0, max(0.0, cfg.dormancy_condition)),
    )


def effective_curve_params(world: Any) -> CurveParams:
    """Base config plus milestone bias plus every active zone's modifiers."""

    bias = getattr(world, "curve_bias", None) or CurveBias()
    for zone_id in sorted(world.zones):
        zone = world.zones[zone_id]
        if not zone.dormant and zone.curve_modifiers:
            bias = bias.merged(zone.curve_modifiers)
    return resolve_curve_params(ensure_economy_config(world), bias)


def ensure_economy_config(world: Any) -> EconomyConfig:
    cfg = getattr(world, "economy_cfg", None)
    if not isinstance(cfg, EconomyConfig):
        cfg = EconomyConfig()
        world.economy_cfg = cfg
    return cfg


def ensure_timewarp_config(world: Any) -> TimewarpConfig:
    cfg = getattr(world, "timewarp_cfg", None)
    if not isinstance(cfg, TimewarpConfig):
        cfg = TimewarpConfig()
        world.timewarp_cfg = cfg
    return cfg


__all__ = [
    "BIAS_ACTIVITY_SMOOTHING",
    "BIAS_ENERGY_COST",
    "BIAS_KEYS",
    "BIAS_MAINTENANCE_COST",
    "BIAS_NATURAL_DECAY",
    "BIAS_POPULATION_K",
    "BIAS_SATURATION",
    "BIAS_STOCKPILE_DECAY",
    "CurveBias",
    "CurveParams",
    "EconomyConfig",
    "MIN_POPULATION_K",
    "MIN_SATURATION_BIAS",
    "TimewarpConfig",
    "effective_curve_params",
    "ensure_economy_config",
    "ensure_timewarp_config",
    "resolve_curve_params",
]
