"""Milestone / reawakening evaluator.

Milestones are static definitions loaded at startup.  Each one carries a
conjunction of threshold conditions over the ledger, zones and play time,
and a list of one-shot effects.  Effects only ever adjust the curve-bias
overlay, advance a zone's reawakening stage (with its flags, modifiers and
saturation bias) or add narrative.  No effect writes a resource value or a
zone's condition; a dormant ruin still has to be restored by the player.

Which milestones have fired is world state (:class:`MilestoneState`), so the
definitions themselves stay immutable and shareable between worlds.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from typing import Any, Iterable, List, Mapping, Sequence, Set

from quiteville.admin_log import ensure_admin_log
from quiteville.errors import InvalidState, TemplateError
from quiteville.runtime.config import BIAS_KEYS, MIN_SATURATION_BIAS, CurveBias
from quiteville.runtime.telemetry import ensure_metrics
from quiteville.runtime.timebase import SECONDS_PER_HOUR
from quiteville.world.events import EventKind
from quiteville.world.zones import RESOURCE_NAMES


class ConditionKind(str, Enum):
    POPULATION_MIN = "population_min"
    RESOURCE_MIN = "resource_min"
    ZONE_CONDITION = "zone_condition"
    ZONE_STAGE = "zone_stage"
    TIME_PLAYED = "time_played"


class EffectKind(str, Enum):
    CURVE_BIAS = "curve_bias"
    REAWAKEN_ZONE = "reawaken_zone"
    NARRATIVE = "narrative"


@dataclass(frozen=True, slots=True)
class MilestoneCondition:
    kind: ConditionKind
    value: float
    resource: str | None = None
    zone_id: str | None = None


@dataclass(frozen=True, slots=True)
class MilestoneEffect:
    kind: EffectKind
    key: str | None = None
    delta: float = 0.0
    zone_id: str | None = None
    flags: tuple[str, ...] = ()
    curve_modifiers: tuple[tuple[str, float], ...] = ()
    saturation_bias_delta: float = 0.0
    message: str = ""


@dataclass(frozen=True, slots=True)
class MilestoneDefinition:
    milestone_id: str
    name: str
    conditions: tuple[MilestoneCondition, ...]
    effects: tuple[MilestoneEffect, ...] = ()
    description: str = ""


@dataclass(slots=True)
class MilestoneState:
    fired: Set[str] = field(default_factory=set)


@dataclass(frozen=True, slots=True)
class FiredMilestone:
    milestone_id: str
    tick: int
    effects: tuple[MilestoneEffect, ...]


def ensure_milestone_state(world: Any) -> MilestoneState:
    state = getattr(world, "milestone_state", None)
    if not isinstance(state, MilestoneState):
        state = MilestoneState()
        world.milestone_state = state
    return state


def ensure_curve_bias(world: Any) -> CurveBias:
    bias = getattr(world, "curve_bias", None)
    if not isinstance(bias, CurveBias):
        bias = CurveBias()
        world.curve_bias = bias
    return bias


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def condition_holds(world: Any, condition: MilestoneCondition) -> bool:
    kind = condition.kind
    if kind is ConditionKind.POPULATION_MIN:
        return world.ledger.population_pressure >= condition.value
    if kind is ConditionKind.RESOURCE_MIN:
        return world.ledger.get(condition.resource) >= condition.value
    if kind is ConditionKind.TIME_PLAYED:
        return world.clock.time_played_seconds / SECONDS_PER_HOUR >= condition.value
    zone = world.zones.get(condition.zone_id)
    if zone is None:
        return False
    if kind is ConditionKind.ZONE_CONDITION:
        return not zone.dormant and zone.condition >= condition.value
    if kind is ConditionKind.ZONE_STAGE:
        return zone.reawakening_stage >= condition.value
    raise InvalidState(f"Unsupported milestone condition {kind!r}")


def milestone_ready(world: Any, definition: MilestoneDefinition) -> bool:
    return all(condition_holds(world, condition) for condition in definition.conditions)


def _reawaken_message(zone: Any) -> str:
    if zone.dormant:
        return f"{zone.name} is ready to be restored."
    return f"{zone.name} stirs back to life."


def apply_effect(world: Any, effect: MilestoneEffect, *, tick: int, milestone_id: str) -> None:
    if effect.kind is EffectKind.CURVE_BIAS:
        ensure_curve_bias(world).add(effect.key, effect.delta)
        return
    if effect.kind is EffectKind.NARRATIVE:
        world.event_log.emit(
            EventKind.NARRATIVE, tick=tick, subject_id=milestone_id, message=effect.message
        )
        return

    zone = world.zones.get(effect.zone_id)
    if zone is None:
        ensure_admin_log(world).log_effect_skipped(
            tick=tick, milestone_id=milestone_id, reason=f"unknown zone {effect.zone_id!r}"
        )
        return
    # Stage, flags and curve terms only; condition is left to RestoreZone.
    zone.reawakening_stage += 1
    zone.flags.update(effect.flags)
    for key, delta in effect.curve_modifiers:
        zone.curve_modifiers[key] = zone.curve_modifiers.get(key, 0.0) + delta
    zone.saturation_bias = max(MIN_SATURATION_BIAS, zone.saturation_bias + effect.saturation_bias_delta)
    world.event_log.emit(
        EventKind.ZONE_REAWAKENED,
        tick=tick,
        subject_id=zone.zone_id,
        payload={"stage": zone.reawakening_stage, "dormant": zone.dormant, "milestone": milestone_id},
        message=effect.message or _reawaken_message(zone),
    )


def fire_milestone(world: Any, definition: MilestoneDefinition, *, tick: int) -> FiredMilestone | None:
    """Mark ``definition`` fired and apply its effects exactly once.

    A second request for the same milestone is ignored and recorded as a
    diagnostic.
    """

    state = ensure_milestone_state(world)
    metrics = ensure_metrics(world)
    if definition.milestone_id in state.fired:
        metrics.inc("milestones.reentry")
        ensure_admin_log(world).log_milestone_reentry(tick=tick, milestone_id=definition.milestone_id)
        return None

    state.fired.add(definition.milestone_id)
    world.event_log.emit(
        EventKind.MILESTONE_FIRED,
        tick=tick,
        subject_id=definition.milestone_id,
        payload={"name": definition.name},
        message=definition.description,
    )
    for effect in definition.effects:
        apply_effect(world, effect, tick=tick, milestone_id=definition.milestone_id)
    metrics.inc("milestones.fired")
    return FiredMilestone(milestone_id=definition.milestone_id, tick=tick, effects=definition.effects)


def evaluate_milestones(world: Any, *, tick: int | None = None) -> List[FiredMilestone]:
    """Fire every unfired milestone whose conditions hold, in definition order."""

    if tick is None:
        tick = world.clock.tick
    state = ensure_milestone_state(world)
    fired: List[FiredMilestone] = []
    for definition in world.milestones:
        if definition.milestone_id in state.fired:
            continue
        if not milestone_ready(world, definition):
            continue
        result = fire_milestone(world, definition, tick=tick)
        if result is not None:
            fired.append(result)
    return fired


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _number(raw: Mapping[str, Any], key: str, context: str) -> float:
    if key not in raw:
        raise TemplateError(f"{context}: missing {key!r}")
    try:
        value = float(raw[key])
    except (TypeError, ValueError) as exc:
        raise TemplateError(f"{context}: {key!r} must be a number") from exc
    if not math.isfinite(value):
        raise TemplateError(f"{context}: {key!r} must be finite")
    return value


def _parse_condition(raw: Mapping[str, Any], context: str) -> MilestoneCondition:
    try:
        kind = ConditionKind(raw.get("type"))
    except ValueError as exc:
        raise TemplateError(f"{context}: unknown condition type {raw.get('type')!r}") from exc

    if kind is ConditionKind.POPULATION_MIN:
        return MilestoneCondition(kind=kind, value=_number(raw, "value", context))
    if kind is ConditionKind.RESOURCE_MIN:
        resource = raw.get("resource")
        if resource not in RESOURCE_NAMES:
            raise TemplateError(f"{context}: unknown resource {resource!r}")
        return MilestoneCondition(kind=kind, value=_number(raw, "value", context), resource=resource)
    if kind is ConditionKind.TIME_PLAYED:
        return MilestoneCondition(kind=kind, value=_number(raw, "hours", context))

    zone_id = raw.get("zone_id")
    if not isinstance(zone_id, str) or not zone_id:
        raise TemplateError(f"{context}: {kind.value} needs a zone_id")
    key = "min_condition" if kind is ConditionKind.ZONE_CONDITION else "stage"
    return MilestoneCondition(kind=kind, value=_number(raw, key, context), zone_id=zone_id)


def _parse_effect(raw: Mapping[str, Any], context: str) -> MilestoneEffect:
    try:
        kind = EffectKind(raw.get("type"))
    except ValueError as exc:
        raise TemplateError(f"{context}: unknown effect type {raw.get('type')!r}") from exc

    if kind is EffectKind.CURVE_BIAS:
        key = raw.get("key")
        if key not in BIAS_KEYS:
            raise TemplateError(f"{context}: unknown curve bias term {key!r}")
        return MilestoneEffect(kind=kind, key=key, delta=_number(raw, "delta", context))
    if kind is EffectKind.NARRATIVE:
        message = raw.get("message")
        if not isinstance(message, str) or not message:
            raise TemplateError(f"{context}: narrative effect needs a message")
        return MilestoneEffect(kind=kind, message=message)

    zone_id = raw.get("zone_id")
    if not isinstance(zone_id, str) or not zone_id:
        raise TemplateError(f"{context}: reawaken_zone needs a zone_id")
    modifiers = raw.get("curve_modifiers") or {}
    if not isinstance(modifiers, Mapping):
        raise TemplateError(f"{context}: curve_modifiers must be an object")
    unknown = set(modifiers) - set(BIAS_KEYS)
    if unknown:
        raise TemplateError(f"{context}: unknown curve modifiers {sorted(unknown)}")
    return MilestoneEffect(
        kind=kind,
        zone_id=zone_id,
        flags=tuple(sorted(str(flag) for flag in raw.get("flags") or ())),
        curve_modifiers=tuple((k, _number(modifiers, k, context)) for k in sorted(modifiers)),
        saturation_bias_delta=_number(raw, "saturation_bias_delta", context)
        if "saturation_bias_delta" in raw
        else 0.0,
        message=str(raw.get("message", "")),
    )


def parse_milestone(raw: Mapping[str, Any]) -> MilestoneDefinition:
    if not isinstance(raw, Mapping):
        raise TemplateError(f"Milestone entry must be an object, got {type(raw).__name__}")
    milestone_id = raw.get("id")
    if not isinstance(milestone_id, str) or not milestone_id:
        raise TemplateError("Milestone entry is missing an id")
    context = f"milestone {milestone_id!r}"
    conditions = raw.get("conditions")
    if not isinstance(conditions, Sequence) or isinstance(conditions, str) or not conditions:
        raise TemplateError(f"{context}: needs at least one condition")
    effects = raw.get("effects") or []
    return MilestoneDefinition(
        milestone_id=milestone_id,
        name=str(raw.get("name", milestone_id)),
        description=str(raw.get("description", "")),
        conditions=tuple(_parse_condition(c, context) for c in conditions),
        effects=tuple(_parse_effect(e, context) for e in effects),
    )


def load_milestones(source: str | bytes | Iterable[Mapping[str, Any]] | Mapping[str, Any]) -> tuple[MilestoneDefinition, ...]:
    """Parse milestone definitions from JSON text or already decoded data.

    Accepts a list of entries or an object with a ``milestones`` list.
    """

    data: Any = source
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as exc:
            raise TemplateError(f"Milestone data is not valid JSON: {exc}") from exc
    if isinstance(data, Mapping):
        data = data.get("milestones", [])
    definitions = tuple(parse_milestone(entry) for entry in data)
    seen: Set[str] = set()
    for definition in definitions:
        if definition.milestone_id in seen:
            raise TemplateError(f"Duplicate milestone id {definition.milestone_id!r}")
        seen.add(definition.milestone_id)
    return definitions


def default_milestones() -> tuple[MilestoneDefinition, ...]:
    text = resources.files("quiteville.data").joinpath("milestones.json").read_text(encoding="utf-8")
    return load_milestones(text)


__all__ = [
    "ConditionKind",
    "EffectKind",
    "FiredMilestone",
    "MilestoneCondition",
    "MilestoneDefinition",
    "MilestoneEffect",
    "MilestoneState",
    "apply_effect",
    "condition_holds",
    "default_milestones",
    "ensure_curve_bias",
    "ensure_milestone_state",
    "evaluate_milestones",
    "fire_milestone",
    "load_milestones",
    "milestone_ready",
    "parse_milestone",
]
