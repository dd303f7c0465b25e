"""Shared fixtures: in-memory database, seeded tenant data, fake side effects."""
import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base, Company, Driver, Load, LoadStatus, Trip, TripLoad, get_db
from services.damage_ledger import DamageLedger
from services.load_workflow import LoadWorkflowService

OWNER_ID = 1
OTHER_OWNER_ID = 2
DRIVER_AUTH_ID = "driver-auth-1"


class RecordingNotifier:
    """Notifier stand-in that remembers what it was asked to send."""

    def __init__(self):
        self.sent = []

    def send(self, event, load_id, **context):
        self.sent.append((event, load_id, context))

    @property
    def events(self):
        return [event for event, _, _ in self.sent]


@pytest.fixture
def engine():
    """Single-connection in-memory SQLite shared by every session in a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def driver(db_session):
    driver = Driver(
        auth_user_id=DRIVER_AUTH_ID,
        owner_id=OWNER_ID,
        first_name="Pat",
        last_name="Lee",
    )
    db_session.add(driver)
    db_session.commit()
    return driver


@pytest.fixture
def company(db_session):
    company = Company(owner_id=OWNER_ID, name="Acme Van Lines")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture
def make_load(db_session):
    """Factory for loads owned by the test tenant unless told otherwise."""
    def _make_load(**fields):
        fields.setdefault("owner_id", OWNER_ID)
        fields.setdefault("load_status", LoadStatus.PENDING)
        load = Load(**fields)
        db_session.add(load)
        db_session.commit()
        return load
    return _make_load


@pytest.fixture
def make_trip(db_session, driver):
    """Factory putting the given loads on one trip, in list order."""
    def _make_trip(loads, current_delivery_index=1):
        trip = Trip(
            owner_id=OWNER_ID,
            driver_id=driver.id,
            trip_number="T-100",
            current_delivery_index=current_delivery_index,
        )
        db_session.add(trip)
        db_session.flush()
        for sequence_index, load in enumerate(loads):
            db_session.add(TripLoad(trip_id=trip.id, load_id=load.id, sequence_index=sequence_index))
        db_session.commit()
        return trip
    return _make_trip


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduled_removals():
    return []


@pytest.fixture
def workflow(db_session, notifier):
    return LoadWorkflowService(db_session, notifier=notifier)


@pytest.fixture
def ledger(db_session, scheduled_removals):
    def scheduler(removal_id, countdown):
        scheduled_removals.append((removal_id, countdown))
    return DamageLedger(db_session, scheduler=scheduler)


@pytest.fixture
def client(session_factory, notifier, scheduled_removals):
    """API client wired to the test database and fake side effects."""
    from api.main import app
    from api.routes import workflow as workflow_routes

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_workflow_service(db: Session = Depends(get_db)):
        return LoadWorkflowService(db, notifier=notifier)

    def override_damage_ledger(db: Session = Depends(get_db)):
        return DamageLedger(db, scheduler=lambda removal_id, countdown: scheduled_removals.append((removal_id, countdown)))

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[workflow_routes.get_workflow_service] = override_workflow_service
    app.dependency_overrides[workflow_routes.get_damage_ledger] = override_damage_ledger

    yield TestClient(app)

    app.dependency_overrides.clear()
