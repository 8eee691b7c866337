"""Counters and gauges describing the running economy.

Nothing in the simulation reads these back; they exist for balancing
dashboards and tests.  Counter names are dotted, e.g. ``starvation.energy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ThroughputRanking:
    """The busiest zones by their latest throughput, busiest first."""

    size: int = 5
    latest: dict[str, float] = field(default_factory=dict)

    def record(self, zone_id: str, throughput: float) -> None:
        self.latest[zone_id] = float(throughput)
        if len(self.latest) > self.size:
            self.latest = dict(self._ranked()[: max(1, self.size)])

    def _ranked(self) -> list[tuple[str, float]]:
        return sorted(self.latest.items(), key=lambda item: (-item[1], item[0]))

    def leaders(self) -> list[str]:
        return [zone_id for zone_id, _ in self._ranked()]


@dataclass(slots=True)
class Metrics:
    counters: dict[str, float] = field(default_factory=dict)
    gauges: dict[str, float] = field(default_factory=dict)
    throughput: ThroughputRanking = field(default_factory=ThroughputRanking)

    def inc(self, name: str, n: float = 1.0) -> float:
        self.counters[name] = self.counters.get(name, 0.0) + float(n)
        return self.counters[name]

    def count(self, name: str) -> float:
        return self.counters.get(name, 0.0)

    def set_gauge(self, name: str, value: float) -> None:
        self.gauges[name] = float(value)


def ensure_metrics(world: Any) -> Metrics:
    metrics = getattr(world, "metrics", None)
    if not isinstance(metrics, Metrics):
        metrics = Metrics()
        world.metrics = metrics
    return metrics


__all__ = ["Metrics", "ThroughputRanking", "ensure_metrics"]
