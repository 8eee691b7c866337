"""Zone schema: templates, runtime zones and the zone collection.

Zone categories differ only in template data (throughput, effects, curve
modifiers); there is a single concrete :class:`Zone` type for all of them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from hashlib import sha256
from typing import Dict, Iterator, Mapping, MutableMapping, Set

RESOURCE_NAMES: tuple[str, ...] = ("energy", "maintenance", "stability", "attractiveness")


class ZoneCategory(str, Enum):
    RESIDENTIAL = "RESIDENTIAL"
    MARKET = "MARKET"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    CULTURAL = "CULTURAL"
    TRANSIT = "TRANSIT"
    UTILITY = "UTILITY"


def coerce_zone_category(raw: object) -> ZoneCategory:
    if isinstance(raw, ZoneCategory):
        return raw
    if isinstance(raw, str):
        try:
            return ZoneCategory[raw.upper()]
        except KeyError:
            pass
    raise ValueError(f"Unknown zone category: {raw!r}")


@dataclass(frozen=True, slots=True)
class ResourceVector:
    """Resource-shaped tuple used for outputs, costs and deltas."""

    energy: float = 0.0
    maintenance: float = 0.0
    stability: float = 0.0
    attractiveness: float = 0.0

    def __add__(self, other: "ResourceVector") -> "ResourceVector":
        return ResourceVector(
            energy=self.energy + other.energy,
            maintenance=self.maintenance + other.maintenance,
            stability=self.stability + other.stability,
            attractiveness=self.attractiveness + other.attractiveness,
        )

    def scaled(self, factor: float) -> "ResourceVector":
        return ResourceVector(
            energy=self.energy * factor,
            maintenance=self.maintenance * factor,
            stability=self.stability * factor,
            attractiveness=self.attractiveness * factor,
        )

    def get(self, name: str) -> float:
        if name not in RESOURCE_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def total(self) -> float:
        return self.energy + self.maintenance + self.stability + self.attractiveness

    def is_zero(self) -> bool:
        return all(getattr(self, name) == 0.0 for name in RESOURCE_NAMES)

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in RESOURCE_NAMES}

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object] | None) -> "ResourceVector":
        raw = raw or {}
        unknown = set(raw) - set(RESOURCE_NAMES)
        if unknown:
            raise ValueError(f"Unknown resources: {sorted(unknown)}")
        return cls(**{name: float(raw.get(name, 0.0)) for name in RESOURCE_NAMES})


@dataclass(frozen=True, slots=True)
class PopulationEffect:
    attraction: float = 0.0
    strain: float = 0.0
    decay: float = 0.0


@dataclass(frozen=True, slots=True)
class DecayModel:
    natural_rate: float = 0.001
    neglect_threshold: float = 0.7


@dataclass(frozen=True, slots=True)
class ZoneTemplate:
    template_id: str
    name: str
    category: ZoneCategory
    base_throughput: float
    saturation_bias: float
    outputs: ResourceVector = field(default_factory=ResourceVector)
    costs: ResourceVector = field(default_factory=ResourceVector)
    curve_modifiers: Mapping[str, float] = field(default_factory=dict)
    population: PopulationEffect = field(default_factory=PopulationEffect)
    decay: DecayModel = field(default_factory=DecayModel)
    restore_cost: float = 1.0
    description: str = ""


@dataclass(slots=True)
class Zone:
    zone_id: str
    template_id: str
    name: str
    category: ZoneCategory
    base_throughput: float
    saturation_bias: float
    outputs: ResourceVector = field(default_factory=ResourceVector)
    costs: ResourceVector = field(default_factory=ResourceVector)
    curve_modifiers: Dict[str, float] = field(default_factory=dict)
    population: PopulationEffect = field(default_factory=PopulationEffect)
    decay: DecayModel = field(default_factory=DecayModel)
    restore_cost: float = 1.0
    condition: float = 0.0
    activity: float = 0.0
    dormant: bool = True
    priority: float = 1.0
    reawakening_stage: int = 0
    flags: Set[str] = field(default_factory=set)


def zone_from_template(template: ZoneTemplate, *, zone_id: str | None = None, active: bool = False) -> Zone:
    """Instantiate a zone: a dormant ruin by default, or a running site."""

    return Zone(
        zone_id=zone_id or template.template_id,
        template_id=template.template_id,
        name=template.name,
        category=template.category,
        base_throughput=template.base_throughput,
        saturation_bias=template.saturation_bias,
        outputs=template.outputs,
        costs=template.costs,
        curve_modifiers=dict(template.curve_modifiers),
        population=template.population,
        decay=template.decay,
        restore_cost=template.restore_cost,
        condition=1.0 if active else 0.0,
        activity=0.5 if active else 0.0,
        dormant=not active,
        reawakening_stage=1 if active else 0,
    )


@dataclass(slots=True)
class ZoneLedger:
    zones: MutableMapping[str, Zone] = field(default_factory=dict)

    def add(self, zone: Zone) -> None:
        if zone.zone_id in self.zones:
            raise ValueError(f"Zone {zone.zone_id!r} already exists")
        self.zones[zone.zone_id] = zone

    def get(self, zone_id: str) -> Zone | None:
        return self.zones.get(zone_id)

    def signature(self) -> str:
        canonical = {
            zid: {
                "template": zone.template_id,
                "condition": round(zone.condition, 9),
                "activity": round(zone.activity, 9),
                "dormant": zone.dormant,
                "priority": zone.priority,
                "stage": zone.reawakening_stage,
                "saturation_bias": zone.saturation_bias,
                "modifiers": {k: zone.curve_modifiers[k] for k in sorted(zone.curve_modifiers)},
                "flags": sorted(zone.flags),
            }
            for zid, zone in sorted(self.zones.items())
        }
        payload = json.dumps(canonical, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return sha256(payload).hexdigest()

    def __iter__(self) -> Iterator[str]:
        return iter(self.zones)

    def __len__(self) -> int:
        return len(self.zones)

    def __contains__(self, key: object) -> bool:
        return key in self.zones

    def __getitem__(self, key: str) -> Zone:
        return self.zones[key]

    def items(self):
        return self.zones.items()

    def values(self):
        return self.zones.values()

    def keys(self):
        return self.zones.keys()


__all__ = [
    "DecayModel",
    "PopulationEffect",
    "RESOURCE_NAMES",
    "ResourceVector",
    "Zone",
    "ZoneCategory",
    "ZoneLedger",
    "ZoneTemplate",
    "coerce_zone_category",
    "zone_from_template",
]
