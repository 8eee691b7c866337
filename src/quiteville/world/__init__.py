"""Zone schema and the domain event log."""

from .events import DomainEvent, DomainEventLog, EventKind
from .zones import ResourceVector, Zone, ZoneCategory, ZoneLedger, ZoneTemplate, zone_from_template

__all__ = [
    "DomainEvent",
    "DomainEventLog",
    "EventKind",
    "ResourceVector",
    "Zone",
    "ZoneCategory",
    "ZoneLedger",
    "ZoneTemplate",
    "zone_from_template",
]
