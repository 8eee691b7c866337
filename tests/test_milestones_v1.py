from __future__ import annotations

import copy
import json

import pytest

from quiteville import EventKind, TemplateError, default_milestones, load_milestones, load_zone_templates, new_world, step
from quiteville.admin_log import EFFECT_SKIPPED, MILESTONE_REENTRY
from quiteville.runtime.config import effective_curve_params
from quiteville.runtime.milestones import ConditionKind, EffectKind, evaluate_milestones, fire_milestone
from quiteville.runtime.timebase import SECONDS_PER_HOUR

TEMPLATES = load_zone_templates(
    [
        {"id": "cottage", "category": "residential", "base_throughput": 1.0, "saturation_bias": 1.0},
        {
            "id": "chapel",
            "name": "Chapel",
            "category": "cultural",
            "base_throughput": 1.0,
            "saturation_bias": 1.0,
            "output": {"stability": 0.1},
        },
    ]
)

MILESTONES = [
    {
        "id": "gathering",
        "name": "Gathering",
        "description": "Neighbours meet on the green.",
        "conditions": [{"type": "population_min", "value": 5}],
        "effects": [
            {"type": "curve_bias", "key": "population_k", "delta": 2.0},
            {"type": "narrative", "message": "Bunting goes up."},
        ],
    },
    {
        "id": "bells",
        "conditions": [
            {"type": "population_min", "value": 5},
            {"type": "resource_min", "resource": "stability", "value": 3},
        ],
        "effects": [
            {
                "type": "reawaken_zone",
                "zone_id": "chapel",
                "flags": ["bells"],
                "curve_modifiers": {"stockpile_decay": -0.0005},
                "saturation_bias_delta": 0.5,
            }
        ],
    },
]


def _world():
    return new_world(TEMPLATES, load_milestones(MILESTONES), active=("cottage",))


def test_milestone_fires_once_and_is_idempotent() -> None:
    world = _world()
    world.ledger.population_pressure = 6.0

    first = evaluate_milestones(world)
    second = evaluate_milestones(world)

    assert [item.milestone_id for item in first] == ["gathering"]
    assert second == []
    assert world.milestone_state.fired == {"gathering"}
    kinds = [event.kind for event in world.event_log.events]
    assert kinds == [EventKind.MILESTONE_FIRED, EventKind.NARRATIVE]


def test_curve_bias_is_additive_overlay() -> None:
    world = _world()
    world.ledger.population_pressure = 6.0
    ledger_before = copy.deepcopy(world.ledger)

    evaluate_milestones(world)

    assert world.curve_bias.get("population_k") == pytest.approx(2.0)
    assert effective_curve_params(world).population_k == pytest.approx(12.0)
    assert world.economy_cfg.population_k == pytest.approx(10.0)
    assert world.ledger == ledger_before


def test_all_conditions_must_hold() -> None:
    world = _world()
    world.ledger.population_pressure = 6.0
    world.ledger.stability = 2.0
    evaluate_milestones(world)
    assert "bells" not in world.milestone_state.fired

    world.ledger.stability = 3.0
    fired = evaluate_milestones(world)
    assert [item.milestone_id for item in fired] == ["bells"]


def test_reawaken_advances_stage_without_touching_condition() -> None:
    world = _world()
    world.ledger.population_pressure = 6.0
    world.ledger.stability = 4.0
    chapel = world.zones["chapel"]
    assert chapel.dormant and chapel.reawakening_stage == 0

    evaluate_milestones(world)

    assert chapel.dormant
    assert chapel.condition == 0.0
    assert chapel.reawakening_stage == 1
    assert chapel.flags == {"bells"}
    assert chapel.curve_modifiers == {"stockpile_decay": -0.0005}
    assert chapel.saturation_bias == pytest.approx(1.5)
    reawakened = world.event_log.of_kind(EventKind.ZONE_REAWAKENED)
    assert [event.subject_id for event in reawakened] == ["chapel"]
    assert reawakened[0].get("dormant") is True


def test_reawakened_ruin_stays_ruined_through_steps() -> None:
    milestones = load_milestones(
        [
            {
                "id": "dawn",
                "conditions": [{"type": "time_played", "hours": 0}],
                "effects": [{"type": "reawaken_zone", "zone_id": "chapel"}],
            }
        ]
    )
    world = new_world(TEMPLATES, milestones, active=("cottage",))

    step(world, 1.0)

    assert "dawn" in world.milestone_state.fired
    assert world.zones["chapel"].reawakening_stage == 1
    assert world.zones["chapel"].condition <= 0.0
    assert world.zones["chapel"].dormant


def test_refiring_is_ignored_and_logged() -> None:
    world = _world()
    definition = world.milestones[0]
    assert fire_milestone(world, definition, tick=1) is not None
    bias = world.curve_bias.get("population_k")

    assert fire_milestone(world, definition, tick=2) is None

    assert world.curve_bias.get("population_k") == bias
    assert world.metrics.count("milestones.reentry") == 1
    assert [e.milestone_id for e in world.admin_log.get_recent(event_type=MILESTONE_REENTRY)] == ["gathering"]


def test_reawaken_of_unknown_zone_is_skipped() -> None:
    milestones = load_milestones(
        [
            {
                "id": "ghost",
                "conditions": [{"type": "population_min", "value": 0}],
                "effects": [{"type": "reawaken_zone", "zone_id": "nowhere"}],
            }
        ]
    )
    world = new_world(TEMPLATES, milestones, active=("cottage",))
    assert [item.milestone_id for item in evaluate_milestones(world)] == ["ghost"]
    assert world.admin_log.get_recent(event_type=EFFECT_SKIPPED)


def test_time_played_and_zone_conditions() -> None:
    milestones = load_milestones(
        [
            {"id": "hour", "conditions": [{"type": "time_played", "hours": 1}]},
            {"id": "kept", "conditions": [{"type": "zone_condition", "zone_id": "cottage", "min_condition": 0.9}]},
            {"id": "staged", "conditions": [{"type": "zone_stage", "zone_id": "cottage", "stage": 2}]},
        ]
    )
    world = new_world(TEMPLATES, milestones, active=("cottage",))
    assert [item.milestone_id for item in evaluate_milestones(world)] == ["kept"]

    world.clock.time_played_seconds = SECONDS_PER_HOUR
    world.zones["cottage"].reawakening_stage = 2
    assert [item.milestone_id for item in evaluate_milestones(world)] == ["hour", "staged"]


def test_loader_parses_json_text() -> None:
    definitions = load_milestones(json.dumps({"milestones": MILESTONES}))
    assert [d.milestone_id for d in definitions] == ["gathering", "bells"]
    assert definitions[1].conditions[1].kind is ConditionKind.RESOURCE_MIN
    assert definitions[0].effects[0].kind is EffectKind.CURVE_BIAS


@pytest.mark.parametrize(
    "entry",
    [
        {"id": "x", "conditions": []},
        {"id": "x", "conditions": [{"type": "moon_phase", "value": 1}]},
        {"id": "x", "conditions": [{"type": "resource_min", "resource": "gold", "value": 1}]},
        {"id": "x", "conditions": [{"type": "population_min"}]},
        {"id": "x", "conditions": [{"type": "zone_condition", "min_condition": 0.5}]},
        {"id": "x", "conditions": [{"type": "population_min", "value": 1}], "effects": [{"type": "curve_bias", "key": "gravity", "delta": 1}]},
        {"id": "x", "conditions": [{"type": "population_min", "value": 1}], "effects": [{"type": "set_resource"}]},
        {"conditions": [{"type": "population_min", "value": 1}]},
    ],
)
def test_loader_rejects_malformed_entries(entry) -> None:
    with pytest.raises(TemplateError):
        load_milestones([entry])


def test_loader_rejects_duplicates_and_bad_json() -> None:
    entry = {"id": "x", "conditions": [{"type": "population_min", "value": 1}]}
    with pytest.raises(TemplateError):
        load_milestones([entry, entry])
    with pytest.raises(TemplateError):
        load_milestones("{not json")


def test_bundled_milestones_load() -> None:
    ids = [d.milestone_id for d in default_milestones()]
    assert ids[0] == "first_stirrings"
    assert len(ids) == len(set(ids))
