"""
Unit tests for sensor unit conversion.
"""

import math

import pytest

from src.logbook.units import convert, format_value, match_rule


class TestTemperature:
    def test_kelvin_to_celsius(self):
        result = convert(300.15, "environment.outside.temperature", True)
        assert result.value == pytest.approx(27.0)
        assert result.unit == "°C"

    def test_kelvin_to_fahrenheit(self):
        result = convert(300.15, "environment.outside.temperature", False)
        assert result.value == pytest.approx(80.6)
        assert result.unit == "°F"


class TestWind:
    def test_wind_speed_knots(self):
        result = convert(10, "environment.wind.speedApparent", False)
        assert result.value == pytest.approx(19.44, abs=0.01)
        assert result.unit == "kts"

    def test_wind_speed_metric_stays_ms(self):
        result = convert(10, "environment.wind.speedTrue", True)
        assert result.value == pytest.approx(10.0)
        assert result.unit == "m/s"

    def test_wind_angle_degrees(self):
        result = convert(math.pi, "environment.wind.angleApparent")
        assert result.value == pytest.approx(180.0)
        assert result.unit == "°"

    def test_negative_angle_normalised(self):
        result = convert(-math.pi / 2, "environment.wind.directionTrue")
        assert result.value == pytest.approx(270.0)


class TestOtherQuantities:
    def test_pressure(self):
        assert convert(101325, "environment.outside.pressure", True).value == pytest.approx(1013.25)
        imperial = convert(101325, "environment.outside.pressure", False)
        assert imperial.value == pytest.approx(29.92, abs=0.01)
        assert imperial.unit == "inHg"

    def test_state_of_charge(self):
        result = convert(0.85, "electrical.batteries.house.capacity.stateOfCharge")
        assert result.value == pytest.approx(85.0)
        assert result.unit == "%"

    def test_voltage_as_ratio(self):
        result = convert(0.5, "electrical.batteries.house.voltage")
        assert result.value == pytest.approx(50.0)
        assert result.unit == "%"

    def test_voltage(self):
        result = convert(12.6, "electrical.batteries.house.voltage")
        assert result.value == pytest.approx(12.6)
        assert result.unit == "V"

    def test_boat_speed(self):
        assert convert(5, "navigation.speedOverGround", True).unit == "km/h"
        assert convert(5, "navigation.speedOverGround", True).value == pytest.approx(18.0)
        assert convert(5, "navigation.speedOverGround", False).value == pytest.approx(9.7192)

    def test_distance(self):
        path = "navigation.courseRhumbline.nextPoint.distance"
        assert convert(1852, path, False).value == pytest.approx(1.0)
        assert convert(1852, path, False).unit == "nm"
        assert convert(1852, path, True).value == pytest.approx(1.852)

    def test_depth(self):
        result = convert(10, "environment.depth.belowKeel", False)
        assert result.value == pytest.approx(32.8084)
        assert result.unit == "ft"


class TestRuleOrder:
    def test_wind_speed_wins_over_speed(self):
        assert match_rule("environment.wind.speedApparent").name == "wind_speed"

    def test_temperature_first(self):
        assert match_rule("propulsion.main.temperature").name == "temperature"

    def test_unmatched_passthrough(self):
        result = convert(5, "navigation.headingTrue")
        assert result.value == 5
        assert result.unit == ""


class TestInputs:
    def test_none(self):
        result = convert(None, "environment.outside.temperature")
        assert result.value is None
        assert result.unit == ""

    def test_non_numeric_passthrough(self):
        assert convert("sailing", "navigation.state") == ("sailing", "")

    def test_bool_passthrough(self):
        assert convert(True, "environment.wind.speedApparent") == (True, "")


class TestFormatValue:
    def test_formats(self):
        assert format_value(None) == "N/A"
        assert format_value(1.234) == "1.23"
        assert format_value(7) == "7.00"
        assert format_value("moored") == "moored"
