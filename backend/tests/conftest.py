import os

os.environ.setdefault("STATUS_REFRESH_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from courtbook.database import get_db
from courtbook.main import app
from courtbook.models import Base, ClientWallets, Locations, Users
from courtbook.services import events
from courtbook.services.civil_time import CivilCalendar
from courtbook.services.slots.config import BookingConfig


class FakeRedis:
    """Records pushed events instead of talking to a server."""

    def __init__(self):
        self.lists = {}

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def ping(self):
        return True


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(events, "redis_client", fake)
    monkeypatch.setattr("courtbook.main.redis_client", fake)
    return fake


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def calendar():
    return CivilCalendar()


@pytest.fixture
def config():
    return BookingConfig()


# ── Seed data ────────────────────────────────────────────────────────────


@pytest.fixture
def admin(db):
    user = Users(first_name="Ada", last_name="Admin", role="admin")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def coach(db):
    user = Users(first_name="Cam", last_name="Coach", role="coach")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def make_client(db):
    def _make(balance=0.0, first_name="Cleo"):
        user = Users(first_name=first_name, role="client")
        db.add(user)
        db.flush()
        db.add(ClientWallets(user_id=user.id, balance=balance, currency="AUD", is_blocked=0, version=0))
        db.commit()
        return user

    return _make


@pytest.fixture
def make_locations(db):
    def _make(count=1):
        rows = [Locations(name=f"Court {i + 1}") for i in range(count)]
        db.add_all(rows)
        db.commit()
        return rows

    return _make

