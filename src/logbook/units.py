"""
Unit conversion for Signal K style sensor paths.

Raw values arrive in SI units (Kelvin, m/s, radians, Pascals, meters, volts,
ratios). A path is classified by a priority-ordered rule table: the first rule
whose required substrings all appear in the path wins, so "wind" + "speed"
resolves before the generic "speed" rule.
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, List, NamedTuple, Optional, Tuple

MS_TO_KNOTS = 1.94384
MS_TO_KMH = 3.6
PA_TO_INHG = 0.0002953
M_TO_FT = 3.28084
M_PER_NM = 1852.0
KELVIN_OFFSET = 273.15


class Converted(NamedTuple):
    """Display value and unit label."""
    value: Any
    unit: str


@dataclass(frozen=True)
class ConversionRule:
    """One row of the classification table."""
    name: str
    all_of: Tuple[str, ...]
    any_of: Tuple[str, ...] = ()
    none_of: Tuple[str, ...] = ()
    convert: Callable[[float, bool], Converted] = None

    def matches(self, path: str) -> bool:
        if not all(token in path for token in self.all_of):
            return False
        if self.any_of and not any(token in path for token in self.any_of):
            return False
        return not any(token in path for token in self.none_of)


def _temperature(value: float, metric: bool) -> Converted:
    celsius = value - KELVIN_OFFSET
    if metric:
        return Converted(celsius, "°C")
    return Converted(celsius * 9 / 5 + 32, "°F")


def _wind_speed(value: float, metric: bool) -> Converted:
    if metric:
        return Converted(value, "m/s")
    return Converted(value * MS_TO_KNOTS, "kts")


def _angle(value: float, metric: bool) -> Converted:
    degrees = math.degrees(value) % 360.0
    if degrees >= 360.0:
        degrees = 0.0
    return Converted(degrees, "°")


def _pressure(value: float, metric: bool) -> Converted:
    if metric:
        return Converted(value / 100, "hPa")
    return Converted(value * PA_TO_INHG, "inHg")


def _state_of_charge(value: float, metric: bool) -> Converted:
    return Converted(value * 100, "%")


def _voltage(value: float, metric: bool) -> Converted:
    # Some battery monitors publish state of charge on a voltage path
    if 0.0 <= value <= 1.0:
        return Converted(value * 100, "%")
    return Converted(value, "V")


def _speed(value: float, metric: bool) -> Converted:
    if metric:
        return Converted(value * MS_TO_KMH, "km/h")
    return Converted(value * MS_TO_KNOTS, "kts")


def _distance(value: float, metric: bool) -> Converted:
    if metric:
        return Converted(value / 1000, "km")
    return Converted(value / M_PER_NM, "nm")


def _depth(value: float, metric: bool) -> Converted:
    if metric:
        return Converted(value, "m")
    return Converted(value * M_TO_FT, "ft")


# Evaluation order matters: first match wins.
CONVERSION_RULES: List[ConversionRule] = [
    ConversionRule("temperature", ("temperature",), convert=_temperature),
    ConversionRule("wind_speed", ("wind", "speed"), convert=_wind_speed),
    ConversionRule("wind_angle", ("wind",), any_of=("angle", "direction"), convert=_angle),
    ConversionRule("pressure", ("pressure",), convert=_pressure),
    ConversionRule("state_of_charge", ("stateOfCharge",), convert=_state_of_charge),
    ConversionRule("voltage", ("voltage",), convert=_voltage),
    ConversionRule("speed", ("speed",), none_of=("wind",), convert=_speed),
    ConversionRule("distance", ("distance",), convert=_distance),
    ConversionRule("depth", ("depth",), convert=_depth),
]


def match_rule(path: str) -> Optional[ConversionRule]:
    """Return the first rule that classifies path, or None."""
    for rule in CONVERSION_RULES:
        if rule.matches(path):
            return rule
    return None


def convert(raw_value: Any, path: str, use_metric: bool = False) -> Converted:
    """
    Convert a raw sensor value for display.

    Args:
        raw_value: Value as published by the sensor (SI units)
        path: Dotted sensor path, e.g. "environment.water.temperature"
        use_metric: Metric display units instead of imperial/nautical

    Returns:
        Converted(value, unit); unit is '' for unmatched paths
    """
    if raw_value is None:
        return Converted(None, "")

    if isinstance(raw_value, bool) or not isinstance(raw_value, Real):
        return Converted(raw_value, "")

    rule = match_rule(path or "")
    if rule is None:
        return Converted(raw_value, "")
    return rule.convert(float(raw_value), use_metric)


def format_value(value: Any) -> str:
    """Display text for a converted value."""
    if value is None:
        return "N/A"
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, Real):
        return f"{value:.2f}"
    return str(value)
