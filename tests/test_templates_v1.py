from __future__ import annotations

import pytest

from quiteville import InvalidState, TemplateError, ZoneCategory, add_zone, default_zone_templates, load_zone_templates, new_world
from quiteville.world.zones import DecayModel, ResourceVector

MINIMAL = {"id": "shed", "category": "INFRASTRUCTURE", "base_throughput": 1.0, "saturation_bias": 0.5}


def test_bundled_templates_cover_every_category() -> None:
    templates = default_zone_templates()
    assert {t.category for t in templates.values()} == set(ZoneCategory)
    assert "old_homestead" in templates


def test_minimal_template_defaults() -> None:
    template = load_zone_templates([MINIMAL])["shed"]
    assert template.name == "shed"
    assert template.category is ZoneCategory.INFRASTRUCTURE
    assert template.outputs == ResourceVector()
    assert template.decay == DecayModel()
    assert template.restore_cost == pytest.approx(1.0)
    assert template.curve_modifiers == {}


def test_json_text_and_wrapped_object() -> None:
    text = '{"zones": [{"id": "shed", "category": "transit", "base_throughput": 2, "saturation_bias": 1, "output": {"energy": 0.5}}]}'
    template = load_zone_templates(text)["shed"]
    assert template.category is ZoneCategory.TRANSIT
    assert template.outputs.energy == pytest.approx(0.5)


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_throughput": -1.0},
        {"saturation_bias": 0.0},
        {"category": "castle"},
        {"output": {"gold": 1.0}},
        {"output": {"energy": -0.5}},
        {"upkeep": {"maintenance": -0.1}},
        {"upkeep": {"energy": "lots"}},
        {"curve_modifiers": {"gravity": 1.0}},
        {"population": {"attraction": -1.0}},
        {"decay": {"natural_rate": -0.1}},
        {"restore_cost": -2.0},
        {"saturation_bias": float("nan")},
        {"id": ""},
    ],
)
def test_malformed_templates_are_rejected(overrides) -> None:
    with pytest.raises(TemplateError):
        load_zone_templates([{**MINIMAL, **overrides}])


def test_duplicate_ids_and_bad_json_are_rejected() -> None:
    with pytest.raises(TemplateError):
        load_zone_templates([MINIMAL, MINIMAL])
    with pytest.raises(TemplateError):
        load_zone_templates("[")


def test_new_world_instantiates_every_template() -> None:
    templates = load_zone_templates([MINIMAL, {**MINIMAL, "id": "barn"}])
    world = new_world(templates, (), active=("barn",))
    assert set(world.zones) == {"shed", "barn"}
    assert world.zones["shed"].dormant and world.zones["shed"].condition == 0.0
    assert not world.zones["barn"].dormant and world.zones["barn"].reawakening_stage == 1
    assert world.ledger.energy == pytest.approx(world.economy_cfg.starting_energy)

    with pytest.raises(InvalidState):
        new_world(templates, (), active=("castle",))


def test_add_zone() -> None:
    world = new_world(load_zone_templates([MINIMAL]), (), active=())
    zone = add_zone(world, "shed", zone_id="shed-2", active=True)
    assert world.zones["shed-2"] is zone
    assert zone.template_id == "shed"
    with pytest.raises(InvalidState):
        add_zone(world, "shed", zone_id="shed-2")
    with pytest.raises(InvalidState):
        add_zone(world, "castle")
