"""Quiteville economy core public facade.

Typical use::

    world = new_world()
    step(world, 1.0)
    resume(world, elapsed_seconds)
    apply_command(world, RestoreZone("community_market"))
    text = snapshot_to_json(snapshot(world))
"""

from .admin_log import AdminEventLog
from .errors import InvalidState, TemplateError
from .runtime.commands import RestoreZone, SetPriority, apply_command
from .runtime.config import CurveBias, EconomyConfig, TimewarpConfig
from .runtime.ledger import ResourceLedger, estimate_output
from .runtime.milestones import default_milestones, evaluate_milestones, load_milestones
from .runtime.snapshot import (
    WorldSnapshotV1,
    restore,
    restore_world,
    snapshot,
    snapshot_from_json,
    snapshot_to_json,
    snapshot_world,
    world_signature,
)
from .runtime.telemetry import Metrics
from .runtime.templates import default_zone_templates, load_zone_templates
from .runtime.timewarp import resume
from .simulation.engine import StepMode, StepReport, run_tick, step
from .state import SimClock, WorldState
from .world.events import DomainEvent, EventKind
from .world.zones import Zone, ZoneCategory, ZoneTemplate
from .worldgen import add_zone, new_world

__all__ = [
    "AdminEventLog",
    "CurveBias",
    "DomainEvent",
    "EconomyConfig",
    "EventKind",
    "InvalidState",
    "Metrics",
    "ResourceLedger",
    "RestoreZone",
    "SetPriority",
    "SimClock",
    "StepMode",
    "StepReport",
    "TemplateError",
    "TimewarpConfig",
    "WorldSnapshotV1",
    "WorldState",
    "Zone",
    "ZoneCategory",
    "ZoneTemplate",
    "add_zone",
    "apply_command",
    "default_milestones",
    "default_zone_templates",
    "estimate_output",
    "evaluate_milestones",
    "load_milestones",
    "load_zone_templates",
    "new_world",
    "restore",
    "restore_world",
    "resume",
    "run_tick",
    "snapshot",
    "snapshot_from_json",
    "snapshot_to_json",
    "snapshot_world",
    "step",
    "world_signature",
]
