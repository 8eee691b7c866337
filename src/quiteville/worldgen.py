"""World construction for a fresh town.

Every template becomes a zone: the ones named in ``active`` start running,
the rest wait as dormant ruins until the player restores them.  Milestones
only advance a ruin's reawakening stage.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from .errors import InvalidState
from .runtime.config import EconomyConfig, TimewarpConfig
from .runtime.ledger import ResourceLedger
from .runtime.milestones import MilestoneDefinition, default_milestones
from .runtime.templates import default_zone_templates
from .state import SimClock, WorldState
from .world.events import DomainEventLog
from .world.zones import Zone, ZoneLedger, ZoneTemplate, zone_from_template

DEFAULT_ACTIVE_ZONES: tuple[str, ...] = ("old_homestead", "old_well")


def _starting_ledger(cfg: EconomyConfig) -> ResourceLedger:
    ledger = ResourceLedger(
        energy=cfg.starting_energy,
        maintenance=cfg.starting_maintenance,
        stability=cfg.starting_stability,
        attractiveness=cfg.starting_attractiveness,
        population_pressure=cfg.starting_pressure,
    )
    ledger.validate()
    return ledger


def new_world(
    templates: Mapping[str, ZoneTemplate] | None = None,
    milestones: Sequence[MilestoneDefinition] | None = None,
    *,
    active: Iterable[str] = DEFAULT_ACTIVE_ZONES,
    economy_cfg: EconomyConfig | None = None,
    timewarp_cfg: TimewarpConfig | None = None,
) -> WorldState:
    """Build a new town from templates and milestone definitions.

    Omitted templates or milestones fall back to the bundled data set.
    """

    templates = dict(default_zone_templates() if templates is None else templates)
    milestones = tuple(default_milestones() if milestones is None else milestones)
    economy_cfg = economy_cfg or EconomyConfig()
    active = set(active)
    unknown = active - set(templates)
    if unknown:
        raise InvalidState(f"Unknown active zone templates {sorted(unknown)}")

    zones = ZoneLedger()
    for template_id, template in templates.items():
        zones.add(zone_from_template(template, active=template_id in active))

    return WorldState(
        economy_cfg=economy_cfg,
        timewarp_cfg=timewarp_cfg or TimewarpConfig(),
        ledger=_starting_ledger(economy_cfg),
        zones=zones,
        templates=templates,
        milestones=milestones,
        clock=SimClock(),
        event_log=DomainEventLog(max_len=economy_cfg.event_log_capacity),
    )


def add_zone(world: WorldState, template_id: str, *, zone_id: str | None = None, active: bool = False) -> Zone:
    """Instantiate another zone from one of the world's templates."""

    template = world.templates.get(template_id)
    if template is None:
        raise InvalidState(f"Unknown zone template {template_id!r}")
    zone = zone_from_template(template, zone_id=zone_id, active=active)
    if zone.zone_id in world.zones:
        raise InvalidState(f"Zone {zone.zone_id!r} already exists")
    world.zones.add(zone)
    return zone


__all__ = ["DEFAULT_ACTIVE_ZONES", "add_zone", "new_world"]
