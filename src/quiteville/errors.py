"""Exception types raised by the Quiteville economy core.

Only caller bugs surface as exceptions.  Steady-state imbalances such as
resource starvation, zone dormancy or rejected player commands are normal
simulation outcomes and travel through the domain event log instead.
"""

from __future__ import annotations

import math


class InvalidState(ValueError):
    """Malformed input to a pure computation (NaN, negative duration, ...).

    The call that raises performs no mutation.
    """


class TemplateError(ValueError):
    """Static zone or milestone data could not be parsed."""


def require_finite(name: str, value: float, *, minimum: float | None = 0.0) -> float:
    """Return ``value`` as float or raise :class:`InvalidState`."""

    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidState(f"{name} must be a number, got {value!r}") from exc
    if math.isnan(number) or math.isinf(number):
        raise InvalidState(f"{name} must be finite, got {number!r}")
    if minimum is not None and number < minimum:
        raise InvalidState(f"{name} must be >= {minimum}, got {number!r}")
    return number


def require_duration(name: str, value: float) -> float:
    """Like :func:`require_finite` with minimum 0, but lets +inf through."""

    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidState(f"{name} must be a number, got {value!r}") from exc
    if math.isnan(number) or number < 0.0:
        raise InvalidState(f"{name} must be >= 0 and not NaN, got {number!r}")
    return number


def require_unit_interval(name: str, value: float) -> float:
    number = require_finite(name, value)
    if number > 1.0:
        raise InvalidState(f"{name} must be within [0, 1], got {number!r}")
    return number


__all__ = ["InvalidState", "TemplateError", "require_duration", "require_finite", "require_unit_interval"]
