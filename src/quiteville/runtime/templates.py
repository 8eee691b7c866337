"""Zone template loading.

Templates are plain JSON objects; the bundled set lives in
``quiteville/data/zones.json``.  Loading is strict: unknown resources,
unknown curve modifiers, non-finite numbers and out-of-range capacities are
rejected with :class:`~quiteville.errors.TemplateError`.
"""

from __future__ import annotations

import json
import math
from importlib import resources
from typing import Any, Dict, Iterable, Mapping

from quiteville.errors import TemplateError
from quiteville.runtime.config import BIAS_KEYS
from quiteville.world.zones import (
    DecayModel,
    PopulationEffect,
    ResourceVector,
    ZoneTemplate,
    coerce_zone_category,
)


def _number(raw: Mapping[str, Any], key: str, context: str, *, default: float | None = None) -> float:
    if key not in raw:
        if default is None:
            raise TemplateError(f"{context}: missing {key!r}")
        return default
    try:
        value = float(raw[key])
    except (TypeError, ValueError) as exc:
        raise TemplateError(f"{context}: {key!r} must be a number") from exc
    if not math.isfinite(value):
        raise TemplateError(f"{context}: {key!r} must be finite")
    return value


def _vector(raw: Any, context: str) -> ResourceVector:
    if raw is None:
        return ResourceVector()
    if not isinstance(raw, Mapping):
        raise TemplateError(f"{context}: expected an object of resource amounts")
    try:
        vector = ResourceVector.from_mapping(raw)
    except (TypeError, ValueError) as exc:
        raise TemplateError(f"{context}: {exc}") from exc
    if not all(math.isfinite(value) for value in vector.as_dict().values()):
        raise TemplateError(f"{context}: resource amounts must be finite")
    if any(value < 0.0 for value in vector.as_dict().values()):
        raise TemplateError(f"{context}: resource amounts must be >= 0")
    return vector


def parse_zone_template(raw: Mapping[str, Any]) -> ZoneTemplate:
    if not isinstance(raw, Mapping):
        raise TemplateError(f"Zone template must be an object, got {type(raw).__name__}")
    template_id = raw.get("id")
    if not isinstance(template_id, str) or not template_id:
        raise TemplateError("Zone template is missing an id")
    context = f"zone template {template_id!r}"

    try:
        category = coerce_zone_category(raw.get("category"))
    except ValueError as exc:
        raise TemplateError(f"{context}: {exc}") from exc

    base_throughput = _number(raw, "base_throughput", context)
    if base_throughput < 0.0:
        raise TemplateError(f"{context}: base_throughput must be >= 0")
    saturation_bias = _number(raw, "saturation_bias", context)
    if saturation_bias <= 0.0:
        raise TemplateError(f"{context}: saturation_bias must be > 0")

    modifiers_raw = raw.get("curve_modifiers") or {}
    if not isinstance(modifiers_raw, Mapping):
        raise TemplateError(f"{context}: curve_modifiers must be an object")
    unknown = set(modifiers_raw) - set(BIAS_KEYS)
    if unknown:
        raise TemplateError(f"{context}: unknown curve modifiers {sorted(unknown)}")
    modifiers = {key: _number(modifiers_raw, key, context) for key in sorted(modifiers_raw)}

    population_raw = raw.get("population") or {}
    decay_raw = raw.get("decay") or {}
    if not isinstance(population_raw, Mapping) or not isinstance(decay_raw, Mapping):
        raise TemplateError(f"{context}: population and decay must be objects")
    population = PopulationEffect(
        attraction=_number(population_raw, "attraction", context, default=0.0),
        strain=_number(population_raw, "strain", context, default=0.0),
        decay=_number(population_raw, "decay", context, default=0.0),
    )
    if min(population.attraction, population.strain, population.decay) < 0.0:
        raise TemplateError(f"{context}: population coefficients must be >= 0")
    defaults = DecayModel()
    decay = DecayModel(
        natural_rate=_number(decay_raw, "natural_rate", context, default=defaults.natural_rate),
        neglect_threshold=_number(decay_raw, "neglect_threshold", context, default=defaults.neglect_threshold),
    )
    if decay.natural_rate < 0.0:
        raise TemplateError(f"{context}: natural_rate must be >= 0")

    restore_cost = _number(raw, "restore_cost", context, default=1.0)
    if restore_cost < 0.0:
        raise TemplateError(f"{context}: restore_cost must be >= 0")

    return ZoneTemplate(
        template_id=template_id,
        name=str(raw.get("name", template_id)),
        category=category,
        base_throughput=base_throughput,
        saturation_bias=saturation_bias,
        outputs=_vector(raw.get("output"), f"{context} output"),
        costs=_vector(raw.get("upkeep"), f"{context} upkeep"),
        curve_modifiers=modifiers,
        population=population,
        decay=decay,
        restore_cost=restore_cost,
        description=str(raw.get("description", "")),
    )


def load_zone_templates(source: str | bytes | Iterable[Mapping[str, Any]] | Mapping[str, Any]) -> Dict[str, ZoneTemplate]:
    """Parse zone templates from JSON text or already decoded data.

    Accepts a list of template objects or an object with a ``zones`` list.
    The result preserves file order.
    """

    data: Any = source
    if isinstance(source, (str, bytes)):
        try:
            data = json.loads(source)
        except json.JSONDecodeError as exc:
            raise TemplateError(f"Zone data is not valid JSON: {exc}") from exc
    if isinstance(data, Mapping):
        data = data.get("zones", [])
    templates: Dict[str, ZoneTemplate] = {}
    for entry in data:
        template = parse_zone_template(entry)
        if template.template_id in templates:
            raise TemplateError(f"Duplicate zone template id {template.template_id!r}")
        templates[template.template_id] = template
    return templates


def default_zone_templates() -> Dict[str, ZoneTemplate]:
    text = resources.files("quiteville.data").joinpath("zones.json").read_text(encoding="utf-8")
    return load_zone_templates(text)


__all__ = ["default_zone_templates", "load_zone_templates", "parse_zone_template"]
