"""Player commands applied between steps.

Commands mutate the world directly but never while a step is running.  A
command that cannot be carried out in the current state (nothing left to
restore, not enough energy) is rejected through a COMMAND_REJECTED event;
only malformed commands raise :class:`InvalidState`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from quiteville.errors import InvalidState, require_finite, require_unit_interval
from quiteville.runtime.config import ensure_economy_config
from quiteville.runtime.telemetry import ensure_metrics
from quiteville.world.events import DomainEvent, EventKind


@dataclass(frozen=True, slots=True)
class RestoreZone:
    zone_id: str
    amount: float = 0.5


@dataclass(frozen=True, slots=True)
class SetPriority:
    zone_id: str
    priority: float


Command = Union[RestoreZone, SetPriority]


def _zone(world: Any, zone_id: str):
    zone = world.zones.get(zone_id)
    if zone is None:
        raise InvalidState(f"Unknown zone {zone_id!r}")
    return zone


def _reject(world: Any, command: Command, reason: str) -> None:
    ensure_metrics(world).inc("commands.rejected")
    world.event_log.emit(
        EventKind.COMMAND_REJECTED,
        tick=world.clock.tick,
        subject_id=command.zone_id,
        payload={"command": type(command).__name__, "reason": reason},
        message=reason,
    )


def restore_zone(world: Any, command: RestoreZone) -> None:
    zone = _zone(world, command.zone_id)
    amount = require_finite("amount", command.amount)
    if amount <= 0.0:
        raise InvalidState(f"restore amount must be > 0, got {amount!r}")

    if zone.condition >= 1.0:
        _reject(world, command, f"{zone.name} is already fully restored.")
        return
    if world.ledger.energy < zone.restore_cost:
        _reject(world, command, f"Not enough energy to restore {zone.name}.")
        return

    cfg = ensure_economy_config(world)
    world.ledger.energy -= zone.restore_cost
    zone.condition = min(1.0, zone.condition + amount)
    revived = zone.dormant and zone.condition > cfg.revive_condition
    if revived:
        zone.dormant = False
    ensure_metrics(world).inc("commands.restore")
    world.event_log.emit(
        EventKind.ZONE_RESTORED,
        tick=world.clock.tick,
        subject_id=zone.zone_id,
        payload={"condition": zone.condition, "revived": revived, "cost": zone.restore_cost},
        message=f"Volunteers patched up {zone.name}.",
    )


def set_priority(world: Any, command: SetPriority) -> None:
    zone = _zone(world, command.zone_id)
    priority = require_unit_interval("priority", command.priority)
    previous = zone.priority
    zone.priority = priority
    world.event_log.emit(
        EventKind.PRIORITY_CHANGED,
        tick=world.clock.tick,
        subject_id=zone.zone_id,
        payload={"previous": previous, "priority": priority},
    )


def apply_command(world: Any, command: Command) -> tuple[DomainEvent, ...]:
    """Apply ``command`` and return the events it produced."""

    cursor = world.event_log.next_seq
    if isinstance(command, RestoreZone):
        restore_zone(world, command)
    elif isinstance(command, SetPriority):
        set_priority(world, command)
    else:
        raise InvalidState(f"Unsupported command {command!r}")
    return tuple(world.event_log.since(cursor))


__all__ = ["Command", "RestoreZone", "SetPriority", "apply_command", "restore_zone", "set_priority"]
