from __future__ import annotations

import importlib
import json
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from hashlib import sha256
from typing import Any, Mapping, MutableMapping, Sequence

from quiteville.errors import InvalidState

SNAPSHOT_SCHEMA_VERSION = "world_snapshot_v1"
_TRUSTED_PREFIX = "quiteville."


@dataclass(slots=True)
class WorldSnapshotV1:
    schema_version: str
    tick: int
    last_simulated_time: float
    world: Mapping[str, Any]


def _resolve_type(path: str):
    if not path.startswith(_TRUSTED_PREFIX):
        raise InvalidState(f"Snapshot references foreign type {path!r}")
    module_path, _, attr = path.rpartition(".")
    module = importlib.import_module(module_path)
    return getattr(module, attr)


def to_snapshot_dict(obj: Any) -> Any:
    if is_dataclass(obj):
        payload = {
            field.name: to_snapshot_dict(getattr(obj, field.name)) for field in fields(obj) if field.compare
        }
        return {"__type__": f"{obj.__class__.__module__}.{obj.__class__.__qualname__}", "data": payload}

    if isinstance(obj, Enum):
        return {"__enum__": f"{obj.__class__.__module__}.{obj.__class__.__qualname__}", "value": obj.value}

    if isinstance(obj, set):
        return {"__set__": [to_snapshot_dict(item) for item in sorted(obj, key=lambda itm: str(itm))]}

    if isinstance(obj, tuple):
        return {"__tuple__": [to_snapshot_dict(item) for item in obj]}

    if isinstance(obj, Mapping):
        return {str(k): to_snapshot_dict(v) for k, v in sorted(obj.items(), key=lambda item: str(item[0]))}

    if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes, bytearray)):
        return [to_snapshot_dict(item) for item in obj]

    return obj


def from_snapshot_dict(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        if "__enum__" in obj:
            enum_cls = _resolve_type(obj["__enum__"])
            return enum_cls(obj["value"])

        if "__set__" in obj:
            return set(from_snapshot_dict(item) for item in obj.get("__set__", []))

        if "__tuple__" in obj:
            return tuple(from_snapshot_dict(item) for item in obj.get("__tuple__", []))

        if "__type__" in obj and "data" in obj:
            cls = _resolve_type(obj["__type__"])
            if not is_dataclass(cls):
                raise InvalidState(f"Snapshot type {obj['__type__']!r} is not a record")
            kwargs: MutableMapping[str, Any] = {}
            for field in fields(cls):
                if field.name in obj["data"]:
                    kwargs[field.name] = from_snapshot_dict(obj["data"][field.name])
            return cls(**kwargs)

        return {key: from_snapshot_dict(value) for key, value in obj.items()}

    if isinstance(obj, list):
        return [from_snapshot_dict(item) for item in obj]

    return obj


def snapshot_world(world: Any) -> WorldSnapshotV1:
    """Project ``world`` onto JSON-safe data; the world is not touched."""

    return WorldSnapshotV1(
        schema_version=SNAPSHOT_SCHEMA_VERSION,
        tick=world.clock.tick,
        last_simulated_time=world.clock.last_simulated_time,
        world=to_snapshot_dict(world),
    )


def restore_world(snapshot: WorldSnapshotV1):
    if snapshot.schema_version != SNAPSHOT_SCHEMA_VERSION:
        raise InvalidState(f"Unsupported snapshot schema {snapshot.schema_version!r}")
    return from_snapshot_dict(snapshot.world)


def _canonical_dumps(data: Mapping[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), allow_nan=False)


def snapshot_to_json(snapshot: WorldSnapshotV1) -> str:
    snapshot_dict = {
        "schema_version": snapshot.schema_version,
        "tick": snapshot.tick,
        "last_simulated_time": snapshot.last_simulated_time,
        "world": snapshot.world,
    }
    return _canonical_dumps(snapshot_dict)


def snapshot_from_json(text: str | bytes) -> WorldSnapshotV1:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidState(f"Snapshot is not valid JSON: {exc}") from exc
    try:
        return WorldSnapshotV1(
            schema_version=data.get("schema_version", SNAPSHOT_SCHEMA_VERSION),
            tick=data["tick"],
            last_simulated_time=data["last_simulated_time"],
            world=data["world"],
        )
    except (KeyError, AttributeError) as exc:
        raise InvalidState(f"Snapshot is missing {exc}") from exc


def world_signature(world: Any) -> str:
    clock = world.clock
    canonical = {
        "tick": clock.tick,
        "last_simulated_time": round(clock.last_simulated_time, 9),
        "time_played": round(clock.time_played_seconds, 9),
        "output_estimate": round(clock.last_output_estimate, 9),
        "ledger": world.ledger.signature(),
        "zones": world.zones.signature(),
        "curve_bias": world.curve_bias.signature(),
        "fired": sorted(world.milestone_state.fired),
        "events": world.event_log.signature(),
    }
    return sha256(_canonical_dumps(canonical).encode("utf-8")).hexdigest()


snapshot = snapshot_world
restore = restore_world


__all__ = [
    "SNAPSHOT_SCHEMA_VERSION",
    "WorldSnapshotV1",
    "from_snapshot_dict",
    "restore",
    "restore_world",
    "snapshot",
    "snapshot_from_json",
    "snapshot_to_json",
    "snapshot_world",
    "to_snapshot_dict",
    "world_signature",
]
