# tests/conftest.py
"""
Shared fixtures for the booking core tests.

Each test gets its own in-memory SQLite database, a seeded studio with two
rooms and some equipment, one user per role and a controllable clock.
"""

import os

# Settings are read at import time; configure them before any studiobook import.
os.environ["CI"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BOOKING_LOCK_BACKEND"] = "local"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from studiobook.core.enums import RoleName
from studiobook.database import Base

# Import models so Base.metadata is populated for create_all.
import studiobook.models  # noqa: F401
from studiobook.models import Booking, BookingStatus, Equipment, Room, Studio, User
from studiobook.principal import ActorContext
from studiobook.schemas.booking import BookingCreate, EquipmentLine
from studiobook.services.booking_service import BookingService
from studiobook.services.conflict_checker import ConflictChecker
from studiobook.services.equipment_ledger import EquipmentLedger
from studiobook.services.payment_ledger import PaymentLedger

BOOKING_DAY = datetime(2026, 3, 9, tzinfo=timezone.utc)
START_OF_TESTS = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock the services read "now" from."""

    def __init__(self, now: datetime):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)

    def set(self, value: datetime) -> None:
        self.current = value


def at(hour: int, minute: int = 0, day: datetime = BOOKING_DAY) -> datetime:
    """Aware UTC instant on the booking day."""
    return day.replace(hour=hour, minute=minute)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START_OF_TESTS)


@pytest.fixture
def when():
    return at


@pytest.fixture
def studio(db) -> Studio:
    studio = Studio(name="Northside Sound", timezone="America/New_York")
    db.add(studio)
    db.commit()
    return studio


@pytest.fixture
def room(db, studio) -> Room:
    room = Room(studio_id=studio.id, name="Studio A", capacity=6)
    db.add(room)
    db.commit()
    return room


@pytest.fixture
def second_room(db, studio) -> Room:
    room = Room(studio_id=studio.id, name="Studio B", capacity=None)
    db.add(room)
    db.commit()
    return room


@pytest.fixture
def microphones(db, studio) -> Equipment:
    item = Equipment(studio_id=studio.id, name="SM7B", category="microphone", total_quantity=3)
    db.add(item)
    db.commit()
    return item


@pytest.fixture
def camera(db, studio) -> Equipment:
    item = Equipment(studio_id=studio.id, name="FX3", category="camera", total_quantity=1)
    db.add(item)
    db.commit()
    return item


def _make_user(db, email: str, role: RoleName, name: str) -> User:
    user = User(email=email, hashed_password="not-a-real-hash", name=name, role=role.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin_user(db) -> User:
    return _make_user(db, "admin@example.com", RoleName.ADMIN, "Ada Admin")


@pytest.fixture
def staff_user(db) -> User:
    return _make_user(db, "engineer@example.com", RoleName.STAFF, "Sam Engineer")


@pytest.fixture
def client_user(db) -> User:
    return _make_user(db, "band@example.com", RoleName.CLIENT, "Casey Band")


@pytest.fixture
def other_client(db) -> User:
    return _make_user(db, "podcast@example.com", RoleName.CLIENT, "Pat Podcast")


@pytest.fixture
def admin(admin_user) -> ActorContext:
    return ActorContext(user_id=admin_user.id, role=RoleName.ADMIN)


@pytest.fixture
def staff(staff_user) -> ActorContext:
    return ActorContext(user_id=staff_user.id, role=RoleName.STAFF)


@pytest.fixture
def client(client_user) -> ActorContext:
    return ActorContext(user_id=client_user.id, role=RoleName.CLIENT)


@pytest.fixture
def other(other_client) -> ActorContext:
    return ActorContext(user_id=other_client.id, role=RoleName.CLIENT)


@pytest.fixture
def booking_service(db, clock) -> BookingService:
    return BookingService(db, clock=clock)


@pytest.fixture
def conflict_checker(db, clock) -> ConflictChecker:
    return ConflictChecker(db, clock=clock)


@pytest.fixture
def equipment_ledger(db, clock) -> EquipmentLedger:
    return EquipmentLedger(db, clock=clock)


@pytest.fixture
def payment_ledger(db, clock) -> PaymentLedger:
    return PaymentLedger(db, clock=clock)


@pytest.fixture
def book(booking_service, studio, room, client):
    """Create a booking through the service; defaults to the client booking Studio A."""

    def _book(start, end, *, actor=None, room_id=None, equipment=None, **extra):
        data = BookingCreate(
            studio_id=studio.id,
            room_id=room_id or room.id,
            start_time=start,
            end_time=end,
            equipment=[EquipmentLine(equipment_id=eid, quantity=qty) for eid, qty in (equipment or {}).items()],
            **extra,
        )
        return booking_service.create_booking(actor or client, data)

    return _book


@pytest.fixture
def insert_booking(db, studio, room, client_user):
    """Write a booking row directly, bypassing the lifecycle rules."""

    def _insert(start, end, status=BookingStatus.PENDING, *, room_id=None) -> Booking:
        booking = Booking(
            studio_id=studio.id,
            room_id=room_id or room.id,
            client_id=client_user.id,
            staff_ids=[],
            start_time=start,
            end_time=end,
            status=BookingStatus(status).value,
            attendees=1,
        )
        db.add(booking)
        db.commit()
        return booking

    return _insert
