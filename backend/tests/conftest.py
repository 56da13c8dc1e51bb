"""Pytest configuration and fixtures."""

import itertools
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from bookflow.clock import get_now
from bookflow.database import get_db, init_db, make_engine, make_session_factory
from bookflow.main import app
from bookflow.models import Bookings, Businesses, Services, Staff, t_staff_services
from bookflow.services import events
from bookflow.services.booking_store import booking_times
from bookflow.services.slots.schedule import DAY_NAMES

# Monday 2025-03-10, 08:00 UTC
FIXED_NOW = datetime(2025, 3, 10, 8, 0, tzinfo=timezone.utc)
TODAY = "2025-03-10"
TOMORROW = "2025-03-11"
SUNDAY = "2025-03-16"

# Monday to Saturday 09:00-17:00, Sunday closed
WEEK_9_TO_17 = {
    **{day: {"start": "09:00", "end": "17:00"} for day in DAY_NAMES[:6]},
    "sunday": None,
}


class RecordingRedis:
    """Stands in for the Redis connection used by the event emitter."""

    def __init__(self):
        self.pushed = []

    def rpush(self, key, value):
        self.pushed.append((key, json.loads(value)))
        return len(self.pushed)

    def types(self):
        return [event["type"] for _, event in self.pushed]


class Seeder:
    """Writes fixture rows, each call in its own committed session."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._slugs = itertools.count(1)

    def _add(self, obj) -> int:
        with self.session_factory() as db:
            db.add(obj)
            db.commit()
            return obj.id

    def business(self, working_hours=None, **overrides) -> int:
        fields = {
            "name": "Glow Salon",
            "slug": f"glow-{next(self._slugs)}",
            "timezone": "UTC",
            "working_hours": json.dumps(WEEK_9_TO_17 if working_hours is None else working_hours),
            "slot_interval_minutes": 30,
            "min_notice_hours": 1,
            "advance_days": 30,
        }
        fields.update(overrides)
        return self._add(Businesses(**fields))

    def service(self, business_id: int, duration: int = 60, buffer: int = 0, **overrides) -> int:
        fields = {
            "business_id": business_id,
            "name": f"Service {duration}m",
            "duration_minutes": duration,
            "buffer_minutes": buffer,
            "price": 500.0,
        }
        fields.update(overrides)
        return self._add(Services(**fields))

    def staff(self, business_id: int, working_hours=None, **overrides) -> int:
        fields = {
            "business_id": business_id,
            "name": "Asha",
            "working_hours": json.dumps(working_hours or {}),
        }
        fields.update(overrides)
        return self._add(Staff(**fields))

    def link(self, staff_id: int, service_id: int) -> None:
        with self.session_factory() as db:
            db.execute(t_staff_services.insert().values(staff_id=staff_id, service_id=service_id))
            db.commit()

    def booking(
        self,
        business_id: int,
        service_id: int,
        staff_id: int,
        start: str,
        duration: int = 60,
        buffer: int = 0,
        status: str = "confirmed",
        expires_at: str | None = None,
    ) -> int:
        return self._add(Bookings(
            business_id=business_id,
            service_id=service_id,
            staff_id=staff_id,
            customer_name="Existing Customer",
            customer_phone="9876543210",
            status=status,
            expires_at=expires_at,
            **booking_times(datetime.fromisoformat(start), duration, buffer),
        ))


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'bookflow-test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture(autouse=True)
def recorded_events(monkeypatch):
    fake = RecordingRedis()
    monkeypatch.setattr(events, "redis_client", fake)
    monkeypatch.setattr(events.settings, "events_enabled", True)
    return fake


@pytest.fixture
def now():
    """Mutable clock: tests may reassign `now.value`."""
    class Clock:
        value = FIXED_NOW
    return Clock


@pytest.fixture
def client(session_factory, now):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: now.value
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def salon(seed):
    """One business, a 60-minute service and two staff members."""
    business_id = seed.business()
    service_id = seed.service(business_id, duration=60)
    staff_a = seed.staff(business_id, name="Asha")
    staff_b = seed.staff(business_id, name="Ben")
    return {
        "business_id": business_id,
        "service_id": service_id,
        "staff_a": staff_a,
        "staff_b": staff_b,
    }

