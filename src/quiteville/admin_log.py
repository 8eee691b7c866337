"""Diagnostic event log for the economy core.

Domain events (``quiteville.world.events``) describe what happened in the
town and are part of the saved world.  This log is different: it captures
diagnostics aimed at whoever is debugging or balancing the economy, such as
a milestone that was asked to fire twice, an offline gap that had to be
clamped or a step that was refused because its inputs were malformed.

* side-effect free records tagged by tick and optional zone/milestone
* helpers for the canonical diagnostic families
* a ring buffer with filtering hooks so tooling can show recent activity

Records never influence the simulation and are not persisted in snapshots.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple

MILESTONE_REENTRY = "MILESTONE_REENTRY"
OFFLINE_APPROXIMATION = "OFFLINE_APPROXIMATION"
OFFLINE_GAP_CLAMPED = "OFFLINE_GAP_CLAMPED"
STEP_REJECTED = "STEP_REJECTED"
EFFECT_SKIPPED = "EFFECT_SKIPPED"


@dataclass(slots=True)
class AdminEvent:
    """Structured record for a single diagnostic event."""

    tick: int
    event_type: str
    payload: MutableMapping[str, Any]
    zone_id: Optional[str] = None
    milestone_id: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def summary(self) -> str:
        """Return a compact string summarising the payload."""

        if self.event_type == MILESTONE_REENTRY:
            return f"{self.milestone_id or '?'} already fired"
        if self.event_type == OFFLINE_GAP_CLAMPED:
            requested = self.payload.get("requested_hours")
            applied = self.payload.get("applied_hours")
            if requested is not None and applied is not None:
                return f"{requested:0.1f}h -> {applied:0.1f}h"
        if self.event_type == STEP_REJECTED:
            return str(self.payload.get("reason", "?"))
        return ", ".join(f"{k}={v}" for k, v in sorted(self.payload.items()))


class AdminEventLog:
    """Fixed-size diagnostic history."""

    def __init__(self, capacity: int = 1_000) -> None:
        self.capacity = max(1, capacity)
        self._events: Deque[AdminEvent] = deque(maxlen=self.capacity)

    # ------------------------------------------------------------------
    # Recording helpers
    # ------------------------------------------------------------------
    def record(
        self,
        *,
        tick: int,
        event_type: str,
        payload: Mapping[str, Any],
        zone_id: Optional[str] = None,
        milestone_id: Optional[str] = None,
        tags: Sequence[str] = (),
    ) -> AdminEvent:
        event = AdminEvent(
            tick=tick,
            event_type=event_type,
            payload=dict(payload),
            zone_id=zone_id,
            milestone_id=milestone_id,
            tags=tuple(tags),
        )
        self._events.append(event)
        return event

    def log_milestone_reentry(self, *, tick: int, milestone_id: str) -> AdminEvent:
        """A fire request for a milestone that already fired; it was ignored."""

        return self.record(
            tick=tick,
            event_type=MILESTONE_REENTRY,
            payload={"milestone_id": milestone_id},
            milestone_id=milestone_id,
        )

    def log_offline_approximation(
        self,
        *,
        tick: int,
        elapsed_seconds: float,
        applied_hours: float,
        output_estimate: float,
        gain: float,
    ) -> AdminEvent:
        payload = {
            "elapsed_seconds": elapsed_seconds,
            "applied_hours": applied_hours,
            "output_estimate": output_estimate,
            "gain": gain,
        }
        return self.record(tick=tick, event_type=OFFLINE_APPROXIMATION, payload=payload)

    def log_gap_clamped(self, *, tick: int, requested_hours: float, applied_hours: float) -> AdminEvent:
        payload = {"requested_hours": requested_hours, "applied_hours": applied_hours}
        return self.record(tick=tick, event_type=OFFLINE_GAP_CLAMPED, payload=payload, tags=["overflow"])

    def log_effect_skipped(self, *, tick: int, milestone_id: str, reason: str) -> AdminEvent:
        return self.record(
            tick=tick,
            event_type=EFFECT_SKIPPED,
            payload={"reason": reason},
            milestone_id=milestone_id,
        )

    def log_rejected_step(self, *, tick: int, reason: str, zone_id: Optional[str] = None) -> AdminEvent:
        return self.record(
            tick=tick,
            event_type=STEP_REJECTED,
            payload={"reason": reason},
            zone_id=zone_id,
        )

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------
    def __len__(self) -> int:  # pragma: no cover - trivial
        return len(self._events)

    def get_recent(
        self,
        *,
        event_type: Optional[str] = None,
        zone_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AdminEvent]:
        """Return the newest events matching the optional filters."""

        selected: List[AdminEvent] = []
        for event in reversed(self._events):
            if event_type and event.event_type != event_type:
                continue
            if zone_id and event.zone_id != zone_id:
                continue
            selected.append(event)
            if len(selected) >= limit:
                break
        return list(reversed(selected))

    def iter_all(self) -> Iterable[AdminEvent]:
        """Iterate over events in chronological order."""

        return tuple(self._events)

    def clear(self) -> None:
        self._events.clear()


def ensure_admin_log(world: Any) -> AdminEventLog:
    log = getattr(world, "admin_log", None)
    if not isinstance(log, AdminEventLog):
        log = AdminEventLog()
        world.admin_log = log
    return log


__all__ = [
    "AdminEvent",
    "AdminEventLog",
    "EFFECT_SKIPPED",
    "MILESTONE_REENTRY",
    "OFFLINE_APPROXIMATION",
    "OFFLINE_GAP_CLAMPED",
    "STEP_REJECTED",
    "ensure_admin_log",
]
