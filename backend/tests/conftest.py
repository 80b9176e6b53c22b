"""
Pytest configuration: throwaway SQLite database and log directory, fresh per test.
"""
import os
import tempfile

import pytest

# Point settings at a scratch location BEFORE importing any app modules
_TMP_DIR = tempfile.mkdtemp(prefix="ayursutra-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["BOOTSTRAP_ADMIN_USERNAME"] = "admin"
os.environ["BOOTSTRAP_ADMIN_PASSWORD"] = "admin123"

from app.database import Base, SessionLocal, engine, init_db  # noqa: E402
from app.models.patient import Patient  # noqa: E402
from app.models.user import Role  # noqa: E402
from app.services.audit_service import AuditLog  # noqa: E402
from app.services.user_service import UserService  # noqa: E402
from app.utils.rate_limiter import reset_rate_limits  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_database():
    Base.metadata.drop_all(bind=engine)
    init_db()
    reset_rate_limits()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def audit():
    return AuditLog()


@pytest.fixture
def make_user(db, audit):
    """Factory for staff accounts; created in call order."""
    def _make(username, role=Role.DOCTOR, name=None, enabled=True):
        user = UserService(db, audit).create_user(
            {"username": username, "password": "secret123", "name": name or username.title(), "role": role},
            admin_id="u_testadmin",
        )
        if not enabled:
            UserService(db, audit).set_enabled(user.id, False, admin_id="u_testadmin")
        return user
    return _make


@pytest.fixture
def make_patient(db):
    """Factory for patients inserted directly, with optional staff assignment."""
    def _make(name="Patient", doctor=None, practitioner=None, **fields):
        patient = Patient(
            name=name,
            assigned_doctor_id=doctor.id if doctor else None,
            assigned_practitioner_id=practitioner.id if practitioner else None,
            **fields,
        )
        db.add(patient)
        db.commit()
        return patient
    return _make


@pytest.fixture
def client():
    """TestClient with startup run: tables, a fresh audit log and the bootstrap admin."""
    from fastapi.testclient import TestClient
    from app.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login(client):
    """Log in and return Authorization headers."""
    def _login(username, password):
        response = client.post("/api/auth/login", json={"username": username, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _login


@pytest.fixture
def admin_headers(login):
    return login("admin", "admin123")
