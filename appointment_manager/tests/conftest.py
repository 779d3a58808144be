from __future__ import annotations

import os
from collections.abc import Iterator
from types import SimpleNamespace

# Must be set before appointment_manager.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_TOKENS"] = "frontdesk@clinic.test:test-token,manager@clinic.test:manager-token"
os.environ["SCHEDULING_LOCK_BACKEND"] = "memory"
os.environ["SCHEDULING_LOCK_WAIT_SECONDS"] = "5"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from appointment_manager.auth import Operator
from appointment_manager.database import Base, build_engine, get_db
from appointment_manager.main import app
from appointment_manager.models import Service, Staff

OPERATOR = Operator(email="frontdesk@clinic.test")


def seed_catalog(db: Session) -> SimpleNamespace:
    """Two staff types, three services, four staff members"""
    haircut = Service(name="Haircut", duration=30, required_staff_type="hairdresser")
    coloring = Service(name="Coloring", duration=90, required_staff_type="hairdresser")
    massage = Service(name="Massage", duration=60, required_staff_type="therapist")
    alice = Staff(name="Alice", service_type="hairdresser", daily_capacity=3)
    bob = Staff(name="Bob", service_type="hairdresser", daily_capacity=1)
    carol = Staff(name="Carol", service_type="therapist", daily_capacity=5)
    dave = Staff(name="Dave", service_type="hairdresser", daily_capacity=5, status="on_leave")
    db.add_all([haircut, coloring, massage, alice, bob, carol, dave])
    db.flush()
    ids = SimpleNamespace(
        haircut=haircut.id,
        coloring=coloring.id,
        massage=massage.id,
        alice=alice.id,
        bob=bob.id,
        carol=carol.id,
        dave=dave.id,
    )
    db.commit()
    return ids


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db: Session) -> SimpleNamespace:
    return seed_catalog(db)


@pytest.fixture
def client(session_factory) -> Iterator[TestClient]:
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-token"}
