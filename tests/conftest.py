"""
Passes Service - Test Configuration and Fixtures
"""
import os

# Set testing environment before any service module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["LOCAL_TZ"] = "UTC"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["EXPIRY_SWEEP_INTERVAL"] = "0"
os.environ["CORS_ORIGINS"] = "http://localhost:3001,http://192.168.1.123:3001"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

import models  # noqa: F401
from app import app
from database import get_engine
from models import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_SECURITY, Device, Pass, User
from rules import as_utc, utc_now
from security import create_access_token, get_password_hash

PASSWORD = "correct-horse-battery"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture
def engine():
    """Fresh in-memory schema for each test"""
    engine = get_engine()
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(engine):
    # no context manager: startup hook (sweeper thread) is not needed here
    return TestClient(app)


def make_user(s: Session, email: str, role: str = ROLE_EMPLOYEE) -> User:
    u = User(email=email, hashed_password=PASSWORD_HASH, role=role)
    s.add(u)
    s.commit()
    s.refresh(u)
    return u


def make_device(s: Session, owner: User, serial: str, name: str = "Work phone") -> Device:
    d = Device(device_name=name, device_type="Phone", serial_number=serial, owner_id=owner.id)
    s.add(d)
    s.commit()
    s.refresh(d)
    return d


def make_pass(s: Session, device: Device, start: datetime, end: datetime, status: str = "active") -> Pass:
    p = Pass(label="SEEDED01", device_id=device.id, start_date=as_utc(start), end_date=as_utc(end),
             status=status)
    s.add(p)
    s.commit()
    s.refresh(p)
    return p


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


def iso(dt: datetime) -> str:
    return as_utc(dt).isoformat()


@pytest.fixture
def employee(session) -> User:
    return make_user(session, "employee@example.com")


@pytest.fixture
def other_employee(session) -> User:
    return make_user(session, "other@example.com")


@pytest.fixture
def security_user(session) -> User:
    return make_user(session, "security@example.com", ROLE_SECURITY)


@pytest.fixture
def admin_user(session) -> User:
    return make_user(session, "admin@example.com", ROLE_ADMIN)


@pytest.fixture
def device(session, employee) -> Device:
    return make_device(session, employee, "SN-0001")


@pytest.fixture
def tomorrow() -> datetime:
    return (utc_now() + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
