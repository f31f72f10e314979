from datetime import datetime, timedelta, timezone

import pytest

from fleet.models import Vehicle
from notifications.audit import InMemoryAuditLog
from notifications.side_effects import SideEffects
from store.memory import InMemoryEntityStore

NOW = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock pinned to NOW; tests move it with advance()."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify_user(self, user_id, title, body, data=None):
        self.sent.append(("user", user_id, title, data))

    def notify_vehicle_driver(self, vehicle_id, title, body, data=None):
        self.sent.append(("vehicle_driver", vehicle_id, title, data))

    def notify_role(self, title, body, data, *roles):
        self.sent.append(("role", tuple(r.value for r in roles), title, data))

    def titles(self):
        return [entry[2] for entry in self.sent]


def _at(hour, minute=0, days=0):
    return NOW.replace(hour=hour, minute=minute) + timedelta(days=days)


@pytest.fixture
def at():
    """Builds a time on the fixed test day (2026-01-05, UTC)."""
    return _at


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store(clock):
    store = InMemoryEntityStore(clock=clock)
    # Names sort V1 < V2 < V3; V4 has no driver, V5 is in maintenance
    store.add_vehicle(Vehicle.new("v1", "V1", driver_id="d1", license_plate="AAA 1001", lat=14.56, lon=121.03, location_at=NOW))
    store.add_vehicle(Vehicle.new("v2", "V2", driver_id="d2", license_plate="AAA 1002", lat=14.55, lon=121.02, location_at=NOW))
    store.add_vehicle(Vehicle.new("v3", "V3", driver_id="d3", license_plate="AAA 1003"))
    store.add_vehicle(Vehicle.new("v4", "V4", license_plate="AAA 1004"))
    store.add_vehicle(Vehicle.new("v5", "V5", driver_id="d5", license_plate="AAA 1005", is_maintenance=True))
    return store


@pytest.fixture
def audit_log():
    return InMemoryAuditLog()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def side_effects(audit_log, notifier):
    return SideEffects(audit_log=audit_log, notifier=notifier)
