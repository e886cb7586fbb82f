"""
Shared pytest fixtures for logbook tests.

Environment variables are set before any api.* import so the API settings
point at an in-memory database and the runtime is not started by the app
lifespan.
"""

import os
from datetime import datetime, timezone

import pytest

# ---------------------------------------------------------------------------
# Section 1: Environment setup (before ANY api.* imports)
# ---------------------------------------------------------------------------
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_ECHO", "false")
os.environ.setdefault("START_SERVICE", "false")

from src.config import (  # noqa: E402
    EmailSettings,
    LogbookConfig,
    PositionTrackingSettings,
    TrackSyncSettings,
)
from src.database.storage import SqlLogStorage  # noqa: E402
from src.logbook.collector import DataCollector  # noqa: E402
from src.logbook.ledger import VoyageLedger  # noqa: E402
from src.logbook.mailer import SendResult  # noqa: E402
from src.logbook.orchestrator import ReportOrchestrator  # noqa: E402
from src.logbook.service import LogbookService  # noqa: E402
from src.metrics import metrics  # noqa: E402

# 2024-06-01 12:00:00 UTC
T0 = int(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc).timestamp())
DAY = 24 * 3600


# ---------------------------------------------------------------------------
# Section 2: Test doubles
# ---------------------------------------------------------------------------


class FakeClock:
    """Settable epoch clock passed as now_fn."""

    def __init__(self, now: float = T0):
        self.now = float(now)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeReader:
    """Path reader with a settable position and sensor values."""

    def __init__(self):
        self.values = {"environment.wind.speedApparent": 10.0}
        self.position = {"latitude": 0.0, "longitude": 0.0}
        self.calls = 0

    def set_position(self, lat, lon) -> None:
        if lat is None:
            self.position = None
        else:
            self.position = {"latitude": lat, "longitude": lon}

    def get_value(self, path):
        self.calls += 1
        if path == "navigation.position":
            return self.position
        return self.values.get(path)


class FakeMailer:
    """Records payloads; fails when fail_with is set."""

    def __init__(self):
        self.enabled = True
        self.fail_with = None
        self.payloads = []
        self.closed = False

    def send(self, payload):
        self.payloads.append(payload)
        if self.fail_with:
            return SendResult(success=False, error=self.fail_with)
        return SendResult(success=True, message_id="<test@logbook>", recipients=["ops@example.com"])

    def close(self):
        self.closed = True


class SpyPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)

    def kinds(self):
        return [e.kind for e in self.events]


# ---------------------------------------------------------------------------
# Section 3: Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(clock):
    """Fresh in-memory storage per test."""
    store = SqlLogStorage("sqlite://", now_fn=clock)
    store.create_schema()
    yield store
    store.close()


@pytest.fixture
def reader():
    return FakeReader()


@pytest.fixture
def collector(reader, clock):
    return DataCollector(
        reader,
        data_paths=[{"path": "environment.wind.speedApparent", "label": "Wind Speed"}],
        now_fn=clock,
    )


@pytest.fixture
def ledger(storage, clock):
    return VoyageLedger(storage, now_fn=clock)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def publisher():
    return SpyPublisher()


@pytest.fixture
def orchestrator(collector, ledger, mailer, publisher, clock):
    return ReportOrchestrator(
        collector,
        ledger,
        mailer=mailer,
        publisher=publisher,
        vessel_name="Test Vessel",
        now_fn=clock,
    )


@pytest.fixture
def logbook_config():
    return LogbookConfig(
        vessel_name="Test Vessel",
        report_interval_hours=24,
        first_report_time="12:00",
        timezone_mode="gps",
        timezone_offset="+00:00",
        fix_wait_attempts=1,
        fix_wait_interval_s=0.01,
        position_tracking=PositionTrackingSettings(enabled=False, interval_minutes=60),
        email=EmailSettings(enabled=False),
        track_sync=TrackSyncSettings(enabled=False),
    )


@pytest.fixture
def service(logbook_config, storage, collector, mailer, publisher, clock):
    """Service wired to the test doubles; not started."""
    svc = LogbookService(
        logbook_config, storage, collector, mailer=mailer, publisher=publisher, now_fn=clock
    )
    yield svc
    svc.stop()


@pytest.fixture
def client(service):
    """FastAPI TestClient serving the test service."""
    from fastapi.testclient import TestClient

    from api.main import app
    from api.state import get_app_state

    state = get_app_state()
    state.set_service(service)
    yield TestClient(app)
    state.reset()
