"""Domain events emitted by the economy core.

Events are immutable records appended to a bounded log in emission order.
Presentation and narrative collaborators read them through ``since`` cursors;
the core never assumes anything about how they are displayed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from hashlib import sha256
from typing import List, Mapping


class EventKind(str, Enum):
    RESOURCE_STARVED = "RESOURCE_STARVED"
    MILESTONE_FIRED = "MILESTONE_FIRED"
    ZONE_DORMANT = "ZONE_DORMANT"
    ZONE_REAWAKENED = "ZONE_REAWAKENED"
    ZONE_RESTORED = "ZONE_RESTORED"
    PRIORITY_CHANGED = "PRIORITY_CHANGED"
    COMMAND_REJECTED = "COMMAND_REJECTED"
    NARRATIVE = "NARRATIVE"
    OFFLINE_CATCH_UP = "OFFLINE_CATCH_UP"
    OFFLINE_GAP_CLAMPED = "OFFLINE_GAP_CLAMPED"


@dataclass(frozen=True, slots=True)
class DomainEvent:
    seq: int
    tick: int
    kind: EventKind
    subject_id: str = ""
    payload: tuple[tuple[str, object], ...] = ()
    message: str = ""

    def get(self, key: str, default: object = None) -> object:
        for name, value in self.payload:
            if name == key:
                return value
        return default


def normalize_payload(payload: Mapping[str, object] | None) -> tuple[tuple[str, object], ...]:
    if not payload:
        return ()
    return tuple((str(k), payload[k]) for k in sorted(payload))


@dataclass(slots=True)
class DomainEventLog:
    max_len: int = 500
    events: List[DomainEvent] = field(default_factory=list)
    next_seq: int = 0
    base_seq: int = 0

    def emit(
        self,
        kind: EventKind,
        *,
        tick: int,
        subject_id: str = "",
        payload: Mapping[str, object] | None = None,
        message: str = "",
    ) -> DomainEvent:
        event = DomainEvent(
            seq=self.next_seq,
            tick=int(tick),
            kind=kind,
            subject_id=subject_id,
            payload=normalize_payload(payload),
            message=message,
        )
        self.append(event)
        return event

    def append(self, event: DomainEvent) -> None:
        self.events.append(event)
        self.next_seq = max(self.next_seq, event.seq + 1)
        if self.max_len > 0 and len(self.events) > self.max_len:
            overflow = len(self.events) - self.max_len
            del self.events[:overflow]
            self.base_seq += overflow

    def since(self, cursor_seq: int) -> List[DomainEvent]:
        if cursor_seq < self.base_seq:
            cursor_seq = self.base_seq
        offset = max(0, cursor_seq - self.base_seq)
        return list(self.events[offset:])

    def of_kind(self, kind: EventKind) -> List[DomainEvent]:
        return [event for event in self.events if event.kind is kind]

    def signature(self) -> str:
        canonical = {
            "base_seq": self.base_seq,
            "next_seq": self.next_seq,
            "events": [
                {
                    "seq": e.seq,
                    "tick": e.tick,
                    "kind": e.kind.value,
                    "subject_id": e.subject_id,
                    "payload": [[k, v] for k, v in e.payload],
                    "message": e.message,
                }
                for e in self.events
            ],
        }
        payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"), default=str)
        return sha256(payload.encode("utf-8")).hexdigest()


__all__ = ["DomainEvent", "DomainEventLog", "EventKind", "normalize_payload"]
