import os

# Set testing environment before the application is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import pytest
from fastapi.testclient import TestClient

from medbook.core.database import Base, SessionLocal, engine, get_db
from medbook.core.security import UserRole, create_access_token
from medbook.main import app
from medbook.models.appointment import Appointment  # noqa: F401
from medbook.models.doctor import Doctor
from medbook.models.user import User
from medbook.services.coordinator import SlotCoordinator
from medbook.services.locks import LocalSlotLock


def override_get_db():
    try:
        db = SessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def coordinator():
    """Coordinator with a private lock table and no retry backoff."""
    return SlotCoordinator(lock=LocalSlotLock(), backoff_seconds=0)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role: UserRole = UserRole.PATIENT, is_active: bool = True) -> User:
        counter["n"] += 1
        user = User(
            email=f"{role.value}{counter['n']}@example.com",
            name=f"{role.value.capitalize()} {counter['n']}",
            role=role,
            is_active=is_active
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_doctor(db):
    def _make_doctor(available: bool = True, fees=100, slots_booked=None) -> Doctor:
        doctor = Doctor(
            name="Dr. Jane Mwangi",
            speciality="General Physician",
            available=available,
            fees=fees,
            slots_booked=slots_booked or {}
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
        return doctor

    return _make_doctor


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = create_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
