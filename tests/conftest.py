"""
Pytest configuration and shared fixtures.

The environment is set before anything from ``seledental`` is imported so the
engine binds to an in-memory SQLite database shared by every session.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["CLINIC_TIMEZONE"] = "America/Bogota"

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from seledental.database import Base, SessionLocal, engine  # noqa: E402
from seledental.domain.appointments.queue import AssignmentQueue  # noqa: E402
from seledental.domain.appointments.schemas import AppointmentCreate  # noqa: E402
from seledental.domain.appointments.service import AppointmentService  # noqa: E402
from seledental.domain.scheduling import clock  # noqa: E402
from seledental.main import app  # noqa: E402
from seledental.models import User  # noqa: E402
from seledental.realtime.events import get_notifier  # noqa: E402

FROZEN_NOW = datetime(2025, 6, 1, 10, 0)


class FrozenClock:
    """Stand-in for clock.clinic_now; move it by assigning ``now``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingNotifier:
    """Collects (room, event, data) instead of publishing."""

    def __init__(self):
        self.events = []

    def notify(self, room, event, data):
        self.events.append((room, event, data))

    def names(self):
        return [event for _, event, _ in self.events]

    def rooms_for(self, event):
        return [room for room, name, _ in self.events if name == event]

    def clear(self):
        self.events.clear()


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def frozen_clock(monkeypatch):
    frozen = FrozenClock(FROZEN_NOW)
    monkeypatch.setattr(clock, "clinic_now", frozen)
    return frozen


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role, first_name="Ana", last_name="Gómez", profile_complete=True, is_active=True):
        counter["n"] += 1
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=f"{role}{counter['n']}@seledental.test",
            phone="3001234567",
            role=role,
            is_active=is_active,
            profile_complete=profile_complete,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def client_user(make_user):
    return make_user("cliente", first_name="Laura", last_name="Martínez")


@pytest.fixture
def other_client(make_user):
    return make_user("cliente", first_name="Carlos", last_name="Ruiz")


@pytest.fixture
def receptionist(make_user):
    return make_user("recepcionista", first_name="Sofía", last_name="López")


@pytest.fixture
def other_receptionist(make_user):
    return make_user("recepcionista", first_name="Marta", last_name="Díaz")


@pytest.fixture
def dentist(make_user):
    return make_user("odontologo", first_name="Andrés", last_name="Torres")


@pytest.fixture
def other_dentist(make_user):
    return make_user("odontologo", first_name="Beatriz", last_name="Castro")


@pytest.fixture
def admin(make_user):
    return make_user("administrador", first_name="Julián", last_name="Vega")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(db, notifier):
    return AppointmentService(db, notifier)


@pytest.fixture
def queue(db, notifier):
    return AssignmentQueue(db, notifier)


@pytest.fixture
def book(service, client_user):
    """Book through the service as ``client_user`` unless another actor is given."""

    def _book(when, actor=None, tipo="general", categoria="odontologia_general", detalles=None):
        data = AppointmentCreate(
            tipoConsulta=tipo, categoria=categoria, fechaHora=when, detalles=detalles
        )
        return service.book(data, actor or client_user)

    return _book


@pytest.fixture
def api(notifier):
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()
