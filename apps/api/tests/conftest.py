"""
Shared fixtures: an app bound to an in-memory SQLite database, a client for
HTTP tests and a GuardService for direct service tests.
"""

import logging
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from guard_api.core.config import Settings
from guard_api.core.database import Base
from guard_api.main import create_app
from guard_api.models.guard import Guard
from guard_api.services.guard_service import GuardService
from guard_api.services.validators import utcnow


def iso_in(days: float) -> str:
    return (utcnow() + timedelta(days=days)).isoformat()


def make_guard_payload(n: int = 1, **overrides) -> dict:
    """A valid create payload; ``n`` keeps the unique fields distinct."""
    payload = {
        "employeeId": f"GRD{n:04d}",
        "firstName": "John",
        "lastName": "Doe",
        "email": f"guard{n}@guardco.ca",
        "phone": "(416) 555-0123",
        "address": {
            "street": "123 King St W",
            "city": "Toronto",
            "province": "ON",
            "postalCode": "M5H 2N2",
            "country": "Canada",
        },
        "emergencyContact": {
            "name": "Jane Doe",
            "relationship": "Spouse",
            "phone": "416-555-0199",
        },
        "employmentDetails": {
            "hireDate": "2024-01-15",
            "employmentType": "full-time",
            "hourlyRate": 25.0,
        },
        "certifications": {
            "securityLicense": {
                "number": f"SL{n:08d}",
                "issueDate": "2023-12-01",
                "expiryDate": iso_in(365),
                "issuingAuthority": "Ontario Ministry of the Solicitor General",
            },
        },
        "skills": ["Patrol", "Customer Service"],
        "notes": "Test guard",
    }
    payload.update(overrides)
    return payload


def expire_license(db, guard_id, days_ago: int = 1) -> None:
    """Backdate a license with a plain UPDATE; the flush hooks would refuse it."""
    db.execute(
        update(Guard)
        .where(Guard.guard_id == guard_id)
        .values(license_expiry_date=utcnow() - timedelta(days=days_ago))
    )
    db.commit()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+pysqlite:///:memory:", env="test", log_level="WARNING")


@pytest.fixture
def app(settings):
    app = create_app(settings)
    Base.metadata.create_all(app.state.engine)
    yield app
    Base.metadata.drop_all(app.state.engine)
    app.state.engine.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def service(db, settings):
    return GuardService(db, settings, logging.getLogger("tests.guards"))
