"""
Voyage track sync to a Signal K resources API (Freeboard-SK).

Each voyage becomes one track resource (a MultiLineString through every
position-bearing entry) and each noon report becomes a note resource at its
position. Resources are written with PUT, so syncing again replaces them.

Usage:
    sync = TrackSync(storage, SignalKResources("http://localhost:3000/signalk/v2/api/resources"))
    sync.sync_active_voyage()
"""

import json
import logging
import threading
import urllib.error
import urllib.request
from typing import Iterable, List, Optional

from .errors import LogbookError, SyncError
from .geo import format_position
from .mailer import short_date
from .models import LogEntry

logger = logging.getLogger(__name__)

RESOURCE_SOURCE = "vessel-noon-logbook"


class SignalKResources:
    """PUT and DELETE against /signalk/v2/api/resources/{type}/{id}."""

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url_for(self, resource_type: str, resource_id: str) -> str:
        return f"{self.base_url}/{resource_type}/{resource_id}"

    def put(self, resource_type: str, resource_id: str, data: dict) -> None:
        """
        Create or replace a resource.

        Raises:
            SyncError: Server unreachable or returned an error status
        """
        req = urllib.request.Request(
            self.url_for(resource_type, resource_id),
            data=json.dumps(data).encode("utf-8"),
            method="PUT",
            headers={"Content-Type": "application/json", "User-Agent": "Logbook/1.0"},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout):
                pass
        except urllib.error.HTTPError as e:
            raise SyncError(f"PUT {resource_type}/{resource_id} failed: HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise SyncError(f"PUT {resource_type}/{resource_id} failed: {e}") from e

    def delete(self, resource_type: str, resource_id: str) -> bool:
        """
        Delete a resource. Returns False when it did not exist.

        Raises:
            SyncError: Server unreachable or returned an error other than 404
        """
        req = urllib.request.Request(
            self.url_for(resource_type, resource_id),
            method="DELETE",
            headers={"User-Agent": "Logbook/1.0"},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout):
                pass
        except urllib.error.HTTPError as e:
            if e.code == 404:
                return False
            raise SyncError(f"DELETE {resource_type}/{resource_id} failed: HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise SyncError(f"DELETE {resource_type}/{resource_id} failed: {e}") from e
        return True


def track_id(voyage_id: int) -> str:
    return f"logbook-voyage-{voyage_id}"


def note_id(voyage_id: int, entry_id: int) -> str:
    return f"logbook-{voyage_id}-entry-{entry_id}"


def track_resource(voyage_name: str, entries: Iterable[LogEntry]) -> Optional[dict]:
    """GeoJSON track feature through every fix, or None without fixes."""
    coordinates = [
        [e.position.longitude, e.position.latitude] for e in entries if e.position is not None
    ]
    if not coordinates:
        return None
    count = len(coordinates)
    return {
        "feature": {
            "type": "Feature",
            "geometry": {"type": "MultiLineString", "coordinates": [coordinates]},
            "properties": {
                "name": voyage_name,
                "description": f"Voyage track with {count} position{'s' if count != 1 else ''}",
                "source": RESOURCE_SOURCE,
            },
            "id": "",
        }
    }


def note_description(entry: LogEntry) -> str:
    sections = []
    if entry.log_text:
        sections.append("=== LOG ENTRY ===\n" + entry.log_text.strip())
    if entry.readings:
        lines = [
            f"{r.label}: {r.value or 'N/A'}" + (f" {r.unit}" if r.unit else "")
            for r in entry.readings
        ]
        sections.append("=== CONDITIONS ===\n" + "\n".join(lines))
    if entry.distance is not None:
        d = entry.distance.rounded()
        sections.append(
            "=== PROGRESS ===\n"
            f"Distance since last: {d.distance_since_last:.1f}nm\n"
            f"Total distance: {d.total_distance:.1f}nm"
        )
    if entry.position is not None:
        sections.append(
            "=== POSITION ===\n"
            + format_position(entry.position.latitude, entry.position.longitude)
        )
    return "\n\n".join(sections)


def note_resource(entry: LogEntry) -> Optional[dict]:
    """Point note for a noon report, or None when it has no position."""
    if entry.position is None:
        return None
    return {
        "feature": {
            "type": "Feature",
            "geometry": {
                "type": "Point",
                "coordinates": [entry.position.longitude, entry.position.latitude],
            },
            "properties": {
                "name": f"Noon Report - {short_date(entry.date_key)}",
                "description": note_description(entry),
                "mimeType": "text/plain",
                "source": RESOURCE_SOURCE,
            },
            "id": "",
        }
    }


class TrackSync:
    """
    Pushes voyage tracks and report notes to a chart plotter.

    Runs on its own thread at the position tracking interval. Failures are
    logged and never reach the report cycle or the sampler.
    """

    def __init__(
        self,
        storage,
        resources: SignalKResources,
        interval_minutes: int = 60,
        enabled: bool = False,
    ):
        self.storage = storage
        self.resources = resources
        self.interval_minutes = interval_minutes
        self.enabled = enabled

        self.sync_count = 0
        self.error_count = 0
        self.last_error: Optional[str] = None

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if not self.enabled:
            logger.debug("Track sync not enabled")
            return
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._sync_loop,
            daemon=True,
            name="TrackSync",
        )
        self._thread.start()
        logger.info(f"Track sync started with {self.interval_minutes} minute interval")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None
            logger.info("Track sync stopped")

    def _sync_loop(self) -> None:
        while not self._stop_event.is_set():
            self.sync_active_voyage()
            self._stop_event.wait(self.interval_minutes * 60)

    def sync_active_voyage(self) -> Optional[dict]:
        """Sync the active voyage; errors are logged, not raised."""
        try:
            voyage = self.storage.active_voyage()
            if voyage is None:
                logger.debug("Track sync: no active voyage")
                return None
            return self.sync_voyage(voyage.id)
        except LogbookError as e:
            self.error_count += 1
            self.last_error = str(e)
            logger.error(f"Track sync error: {e}")
            return None

    def sync_voyage(self, voyage_id: int) -> dict:
        """
        Write the voyage track and one note per noon report.

        Raises:
            SyncError: The track could not be written
            PersistenceError: Entries could not be read
        """
        voyage = self.storage.get_voyage(voyage_id)
        name = voyage.name if voyage is not None else f"Voyage {voyage_id}"
        entries = self.storage.entries_for_voyage(voyage_id, newest_first=False)

        track = track_resource(name, entries)
        if track is None:
            logger.debug(f"Track sync: no positions for voyage {voyage_id}")
            return {"voyage_id": voyage_id, "track_points": 0, "notes": 0}
        self.resources.put("tracks", track_id(voyage_id), track)

        notes = 0
        for entry in entries:
            if entry.is_auto_track:
                continue
            note = note_resource(entry)
            if note is None:
                continue
            try:
                self.resources.put("notes", note_id(voyage_id, entry.id), note)
                notes += 1
            except SyncError as e:
                self.error_count += 1
                logger.warning(f"Note for entry {entry.id} not synced: {e}")

        points = len(track["feature"]["geometry"]["coordinates"][0])
        self.sync_count += 1
        logger.debug(f"Track synced: voyage {voyage_id}, {points} points, {notes} notes")
        return {"voyage_id": voyage_id, "track_points": points, "notes": notes}

    def delete_voyage_resources(self, voyage_id: int, report_ids: List[int]) -> int:
        """Remove a voyage's track and report notes. Returns how many existed."""
        targets = [("tracks", track_id(voyage_id))]
        targets += [("notes", note_id(voyage_id, entry_id)) for entry_id in report_ids]

        deleted = 0
        for resource_type, resource_id in targets:
            try:
                if self.resources.delete(resource_type, resource_id):
                    deleted += 1
            except SyncError as e:
                self.error_count += 1
                logger.warning(str(e))
        logger.debug(f"Deleted {deleted} chart resources for voyage {voyage_id}")
        return deleted

    def statistics(self) -> dict:
        return {
            "enabled": self.enabled,
            "is_running": self.is_running,
            "syncs": self.sync_count,
            "errors": self.error_count,
            "last_error": self.last_error,
        }
