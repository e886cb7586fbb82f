"""
Unit tests for data collection and sensor readers.
"""

import io
import json
import urllib.error
from unittest.mock import patch

import pytest

from src.logbook.collector import DataCollector, SignalKClient, SimulatedPathReader
from src.logbook.geo import distance_nm
from src.logbook.models import Position


class TestDataCollector:
    def test_snapshot(self, collector, reader, clock):
        reader.set_position(43.5, 7.0)
        snapshot = collector.snapshot()

        assert snapshot.timestamp == int(clock.now)
        assert snapshot.date_key == "2024-06-01"
        assert snapshot.position == Position(43.5, 7.0)
        assert snapshot.readings[0].value == "19.44"
        assert snapshot.readings[0].unit == "kts"

    def test_missing_paths_skipped(self, reader, clock):
        collector = DataCollector(
            reader,
            data_paths=[
                {"path": "environment.depth.belowKeel", "label": "Depth"},
                {"path": "environment.wind.speedApparent", "label": "Wind"},
            ],
            now_fn=clock,
        )
        assert [r.label for r in collector.readings()] == ["Wind"]

    @pytest.mark.parametrize("value", [None, "n/a", {"latitude": 1.0}, {"latitude": None, "longitude": 2.0}])
    def test_incomplete_position(self, collector, reader, value):
        reader.position = value
        assert collector.position() is None

    def test_reader_errors_treated_as_missing(self, clock):
        class Broken:
            def get_value(self, path):
                raise ConnectionError("down")

        collector = DataCollector(Broken(), now_fn=clock)
        assert collector.snapshot().position is None


class TestSimulatedPathReader:
    def test_moves_at_speed(self):
        now = {"t": 1000.0}
        sim = SimulatedPathReader(start_lat=0.0, start_lon=0.0, speed_kts=6.0, heading_deg=90.0,
                                  now_fn=lambda: now["t"])
        start = sim.get_value("navigation.position")
        now["t"] += 3600
        later = sim.get_value("navigation.position")

        moved = distance_nm(start["latitude"], start["longitude"], later["latitude"], later["longitude"])
        assert moved == pytest.approx(6.0, abs=1e-6)

    def test_values(self):
        sim = SimulatedPathReader()
        sim.set_value("environment.depth.belowKeel", 12.0)
        assert sim.get_value("environment.depth.belowKeel") == 12.0
        assert sim.get_value("unknown.path") is None


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class TestSignalKClient:
    def test_url_for(self):
        client = SignalKClient("http://boat:3000/signalk/v1/api/")
        assert client.url_for("navigation.position") == (
            "http://boat:3000/signalk/v1/api/vessels/self/navigation/position"
        )

    def test_unwraps_value(self):
        body = json.dumps({"value": {"latitude": 1.0, "longitude": 2.0}, "$source": "gps"}).encode()
        with patch("src.logbook.collector.urllib.request.urlopen", return_value=_FakeResponse(body)):
            value = SignalKClient("http://boat").get_value("navigation.position")
        assert value == {"latitude": 1.0, "longitude": 2.0}

    def test_not_found_is_none(self):
        error = urllib.error.HTTPError("http://boat", 404, "Not Found", {}, None)
        with patch("src.logbook.collector.urllib.request.urlopen", side_effect=error):
            assert SignalKClient("http://boat").get_value("environment.depth.belowKeel") is None

    def test_unreachable_is_none(self):
        with patch("src.logbook.collector.urllib.request.urlopen",
                   side_effect=urllib.error.URLError("refused")):
            assert SignalKClient("http://boat").get_value("navigation.position") is None
