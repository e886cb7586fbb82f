"""
Unit tests for voyage track sync to the Signal K resources API.
"""

import io
import json
import urllib.error
from unittest.mock import patch

import pytest

from src.logbook.errors import PersistenceError, SyncError
from src.logbook.models import DistanceRecord, EnvironmentalReading, NewEntry, Position, date_key_for
from src.logbook.track_sync import (
    SignalKResources,
    TrackSync,
    note_id,
    note_resource,
    track_id,
    track_resource,
)


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeResources:
    """Records writes; fails for resource ids listed in fail_ids."""

    def __init__(self):
        self.stored = {}
        self.fail_ids = set()

    def put(self, resource_type, resource_id, data):
        if resource_id in self.fail_ids:
            raise SyncError(f"PUT {resource_type}/{resource_id} failed: HTTP 500")
        self.stored[(resource_type, resource_id)] = data

    def delete(self, resource_type, resource_id):
        if resource_id in self.fail_ids:
            raise SyncError(f"DELETE {resource_type}/{resource_id} failed: HTTP 500")
        return self.stored.pop((resource_type, resource_id), None) is not None


def _append(storage, voyage_id, ts, lat=0.0, lon=0.0, auto=False, text=None):
    return storage.append(
        NewEntry(
            timestamp=ts,
            date_key=date_key_for(ts),
            position=Position(lat, lon) if lat is not None else None,
            log_text=text,
            is_auto_track=auto,
        ),
        [EnvironmentalReading("environment.wind.speedApparent", "Wind Speed", "12.0", "kn")],
        distance_record=DistanceRecord(1.25, 10.5),
        voyage_id=voyage_id,
    )


@pytest.fixture
def resources():
    return FakeResources()


@pytest.fixture
def sync(storage, resources):
    return TrackSync(storage, resources, interval_minutes=60, enabled=True)


# =============================================================================
# Resource payloads
# =============================================================================


class TestPayloads:
    def test_track_skips_positionless(self, storage, clock):
        voyage_id = storage.start_voyage("Passage", int(clock.now))
        _append(storage, voyage_id, int(clock.now), 1.0, 2.0)
        _append(storage, voyage_id, int(clock.now) + 60, lat=None)
        _append(storage, voyage_id, int(clock.now) + 120, 3.0, 4.0, auto=True)

        track = track_resource("Passage", storage.entries_for_voyage(voyage_id, newest_first=False))
        feature = track["feature"]
        assert feature["geometry"] == {
            "type": "MultiLineString",
            "coordinates": [[[2.0, 1.0], [4.0, 3.0]]],
        }
        assert feature["properties"]["name"] == "Passage"
        assert feature["properties"]["description"] == "Voyage track with 2 positions"

    def test_no_track_without_fixes(self):
        assert track_resource("Empty", []) is None

    def test_note_for_report(self, storage, clock):
        voyage_id = storage.start_voyage("Passage", int(clock.now))
        entry_id = _append(storage, voyage_id, int(clock.now), 10.5, -20.25, text="Fair winds")
        note = note_resource(storage.get_entry(entry_id))["feature"]

        assert note["geometry"] == {"type": "Point", "coordinates": [-20.25, 10.5]}
        assert note["properties"]["name"] == "Noon Report - Jun 1, 2024"
        description = note["properties"]["description"]
        assert "=== LOG ENTRY ===\nFair winds" in description
        assert "Wind Speed: 12.0 kn" in description
        assert "Total distance: 10.5nm" in description
        assert "=== POSITION ===" in description

    def test_no_note_without_position(self, storage, clock):
        entry_id = _append(storage, None, int(clock.now), lat=None, text="Fog")
        assert note_resource(storage.get_entry(entry_id)) is None


# =============================================================================
# Sync
# =============================================================================


class TestTrackSync:
    def test_sync_writes_track_and_report_notes(self, storage, clock, sync, resources):
        voyage_id = storage.start_voyage("Passage", int(clock.now))
        report = _append(storage, voyage_id, int(clock.now), 1.0, 1.0, text="Noon")
        _append(storage, voyage_id, int(clock.now) + 600, 1.1, 1.1, auto=True)

        result = sync.sync_active_voyage()

        assert result == {"voyage_id": voyage_id, "track_points": 2, "notes": 1}
        assert set(resources.stored) == {
            ("tracks", track_id(voyage_id)),
            ("notes", note_id(voyage_id, report)),
        }
        assert sync.sync_count == 1

    def test_no_active_voyage(self, sync, resources):
        assert sync.sync_active_voyage() is None
        assert resources.stored == {}

    def test_failed_note_does_not_stop_sync(self, storage, clock, sync, resources):
        voyage_id = storage.start_voyage("Passage", int(clock.now))
        first = _append(storage, voyage_id, int(clock.now), 1.0, 1.0, text="One")
        second = _append(storage, voyage_id, int(clock.now) + 60, 2.0, 2.0, text="Two")
        resources.fail_ids.add(note_id(voyage_id, first))

        result = sync.sync_voyage(voyage_id)

        assert result["notes"] == 1
        assert ("notes", note_id(voyage_id, second)) in resources.stored
        assert sync.error_count == 1

    def test_failed_track_is_recorded(self, storage, clock, sync, resources):
        voyage_id = storage.start_voyage("Passage", int(clock.now))
        _append(storage, voyage_id, int(clock.now), 1.0, 1.0, text="Noon")
        resources.fail_ids.add(track_id(voyage_id))

        assert sync.sync_active_voyage() is None
        assert sync.error_count == 1
        assert "HTTP 500" in sync.last_error

    def test_storage_failure_is_recorded(self, sync):
        with patch.object(sync.storage, "active_voyage", side_effect=PersistenceError("locked")):
            assert sync.sync_active_voyage() is None
        assert sync.statistics()["errors"] == 1

    def test_delete_voyage_resources(self, storage, clock, sync, resources):
        voyage_id = storage.start_voyage("Passage", int(clock.now))
        report = _append(storage, voyage_id, int(clock.now), 1.0, 1.0, text="Noon")
        sync.sync_voyage(voyage_id)

        # One report id never reached the plotter
        assert sync.delete_voyage_resources(voyage_id, [report, report + 100]) == 2
        assert resources.stored == {}

    def test_disabled_does_not_start(self, storage, resources):
        idle = TrackSync(storage, resources, enabled=False)
        idle.start()
        assert idle.is_running is False


# =============================================================================
# HTTP client
# =============================================================================


class TestSignalKResources:
    def test_put_sends_json(self):
        client = SignalKResources("http://boat:3000/signalk/v2/api/resources/")
        with patch("src.logbook.track_sync.urllib.request.urlopen",
                   return_value=_FakeResponse(b"{}")) as urlopen:
            client.put("notes", "logbook-1-entry-2", {"feature": {}})

        request = urlopen.call_args[0][0]
        assert request.full_url == (
            "http://boat:3000/signalk/v2/api/resources/notes/logbook-1-entry-2"
        )
        assert request.get_method() == "PUT"
        assert json.loads(request.data) == {"feature": {}}

    def test_put_http_error(self):
        error = urllib.error.HTTPError("http://boat", 500, "Server Error", {}, None)
        with patch("src.logbook.track_sync.urllib.request.urlopen", side_effect=error):
            with pytest.raises(SyncError, match="HTTP 500"):
                SignalKResources("http://boat").put("tracks", "t", {})

    def test_delete_missing_is_false(self):
        error = urllib.error.HTTPError("http://boat", 404, "Not Found", {}, None)
        with patch("src.logbook.track_sync.urllib.request.urlopen", side_effect=error):
            assert SignalKResources("http://boat").delete("tracks", "t") is False

    def test_delete_unreachable(self):
        with patch("src.logbook.track_sync.urllib.request.urlopen",
                   side_effect=urllib.error.URLError("refused")):
            with pytest.raises(SyncError):
                SignalKResources("http://boat").delete("tracks", "t")
