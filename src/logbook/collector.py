"""
Sensor data collection.

DataCollector turns a path reader (anything with get_value(path)) into a
Snapshot: position fix, timestamp and converted environmental readings.
Two readers are provided: SignalKClient for a Signal K server's REST API and
SimulatedPathReader for running without instruments.
"""

import json
import logging
import math
import threading
import time
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, List, Optional, Sequence

from .geo import destination_point
from .models import EnvironmentalReading, Position, Snapshot, date_key_for
from .units import KELVIN_OFFSET, convert, format_value

logger = logging.getLogger(__name__)


class SignalKClient:
    """
    Read self-vessel values from a Signal K REST endpoint.

    Usage:
        client = SignalKClient("http://localhost:3000/signalk/v1/api")
        client.get_value("navigation.position")
    """

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/vessels/self/{path.replace('.', '/')}"

    def get_value(self, path: str) -> Any:
        """Current value at path, or None when missing or unreachable."""
        req = urllib.request.Request(
            self.url_for(path), headers={"Accept": "application/json", "User-Agent": "Logbook/1.0"}
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            if e.code != 404:
                logger.warning(f"Signal K returned {e.code} for {path}")
            return None
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.debug(f"Error getting value for path {path}: {e}")
            return None

        if isinstance(data, dict) and "value" in data:
            return data["value"]
        return data


class SimulatedPathReader:
    """
    Synthetic instrument feed for demos and tests.

    The vessel steams along a constant heading from its start position at
    the configured speed; environmental values are steady SI readings.
    """

    def __init__(
        self,
        start_lat: float = 38.53,
        start_lon: float = -28.63,
        speed_kts: float = 6.0,
        heading_deg: float = 75.0,
        now_fn: Callable[[], float] = time.time,
        values: Optional[Dict[str, Any]] = None,
    ):
        self.start_lat = start_lat
        self.start_lon = start_lon
        self.speed_kts = speed_kts
        self.heading_deg = heading_deg
        self._now = now_fn
        self._t0 = now_fn()
        self._lock = threading.Lock()
        self.values: Dict[str, Any] = {
            "environment.wind.speedApparent": 7.2,
            "environment.wind.angleApparent": math.radians(45.0),
            "environment.outside.temperature": 18.5 + KELVIN_OFFSET,
            "environment.water.temperature": 16.0 + KELVIN_OFFSET,
            "environment.outside.pressure": 101325.0,
        }
        if values:
            self.values.update(values)

    def position(self) -> Dict[str, float]:
        hours = max(0.0, self._now() - self._t0) / 3600.0
        lat, lon = destination_point(
            self.start_lat, self.start_lon, self.heading_deg, self.speed_kts * hours
        )
        return {"latitude": lat, "longitude": lon}

    def set_value(self, path: str, value: Any) -> None:
        with self._lock:
            self.values[path] = value

    def get_value(self, path: str) -> Any:
        if path == "navigation.position":
            return self.position()
        with self._lock:
            return self.values.get(path)


class DataCollector:
    """
    Build snapshots from a path reader.

    Args:
        reader: Object with get_value(path)
        position_path: Path holding a {latitude, longitude} object
        data_paths: [{"path": ..., "label": ...}] readings to attach
        use_metric: Metric display units
    """

    def __init__(
        self,
        reader,
        position_path: str = "navigation.position",
        data_paths: Sequence[Dict[str, str]] = (),
        use_metric: bool = False,
        now_fn: Callable[[], float] = time.time,
    ):
        self.reader = reader
        self.position_path = position_path
        self.data_paths = list(data_paths)
        self.use_metric = use_metric
        self._now = now_fn

    def _value(self, path: str) -> Any:
        try:
            return self.reader.get_value(path)
        except Exception as e:
            logger.debug(f"Error getting value for path {path}: {e}")
            return None

    def position(self) -> Optional[Position]:
        """Current fix, or None when either coordinate is unavailable."""
        value = self._value(self.position_path)
        if not isinstance(value, dict):
            return None
        return Position.from_values(value.get("latitude"), value.get("longitude"))

    def readings(self) -> List[EnvironmentalReading]:
        """Converted readings for configured paths; missing paths are skipped."""
        collected = []
        for item in self.data_paths:
            path = item.get("path")
            if not path:
                continue
            raw = self._value(path)
            if raw is None:
                continue
            converted = convert(raw, path, self.use_metric)
            collected.append(EnvironmentalReading(
                path=path,
                label=item.get("label") or path,
                value=format_value(converted.value),
                unit=converted.unit,
                raw_value=converted.value if isinstance(converted.value, (int, float)) else None,
            ))
        return collected

    def snapshot(self) -> Snapshot:
        timestamp = int(self._now())
        return Snapshot(
            timestamp=timestamp,
            date_key=date_key_for(timestamp),
            position=self.position(),
            readings=self.readings(),
        )
