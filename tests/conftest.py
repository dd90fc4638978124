import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "0")
os.environ.setdefault("APP_TIMEZONE", "Asia/Kolkata")
os.environ.setdefault("RATE_LIMIT", "10000/minute")

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from opsportal.db import Base, get_db
from opsportal.models.models import Attendance, Employee


# 2026-10-18 09:40 in Asia/Kolkata (UTC+05:30)
LOCAL_0940 = datetime(2026, 10, 18, 4, 10)
# Local midnight of that day, as stored on attendance rows
TODAY_MIDNIGHT = datetime(2026, 10, 17, 18, 30)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_employee(db):
    def _make(employee_id="EMP007", role="OFFICE_STAFF", name=None, email=None):
        employee = Employee(
            employee_id=employee_id,
            name=name or f"Employee {employee_id}",
            email=email or f"{employee_id.lower()}@example.com",
            role=role,
            status="ACTIVE",
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee

    return _make


@pytest.fixture
def make_attendance(db):
    def _make(employee, date=TODAY_MIDNIGHT, **fields):
        values = {"status": "PRESENT", "attempt_count": "ZERO", "locked": False, "approval_status": "PENDING"}
        values.update(fields)
        record = Attendance(employee_id=employee.id, date=date, **values)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient
    from opsportal.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
