"""
Shared fixtures: an application wired to an in-memory SQLite database.
"""
import pytest
from fastapi.testclient import TestClient

from kneecare.core.config import Settings
from kneecare.main import create_app

API = "/api/v1"
PASSWORD = "secret123"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL="sqlite:///:memory:",
        RATE_LIMIT_ENABLED=False,
        PASSWORD_BCRYPT_ROUNDS=4,
        LOG_FILE=str(tmp_path / "logs" / "app.log"),
        UPLOAD_DIR=str(tmp_path / "uploads"),
        SECRET_KEY="test-secret-key-that-is-long-enough-for-hs256",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email, role="patient", **extra):
    """Register an identity and return (user, headers)."""
    payload = {
        "email": email,
        "password": PASSWORD,
        "first_name": email.split("@")[0].title(),
        "last_name": "Tester",
        "role": role,
    }
    if role == "doctor":
        payload["doctor_info"] = {
            "license_number": f"LIC-{email.split('@')[0]}",
            "specialization": "Orthopedics",
        }
    if role == "admin":
        payload["admin_secret"] = "admin123secret"
    payload.update(extra)
    response = client.post(f"{API}/auth/register", json=payload)
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"], auth_headers(body["access_token"])


@pytest.fixture
def patient(client):
    return register(client, "pat@example.com", medical_info={"height_cm": 170})


@pytest.fixture
def other_patient(client):
    return register(client, "other@example.com")


@pytest.fixture
def doctor(client):
    return register(client, "doc@example.com", role="doctor")


@pytest.fixture
def stranger_doctor(client):
    return register(client, "stranger@example.com", role="doctor")


@pytest.fixture
def admin(client):
    return register(client, "admin@example.com", role="admin")


@pytest.fixture
def relationship(client, doctor, patient):
    """Active relationship between ``doctor`` and ``patient`` with every permission."""
    _, doctor_headers = doctor
    patient_user, _ = patient
    response = client.post(
        f"{API}/relationships/",
        json={"patient_id": patient_user["id"]},
        headers=doctor_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def audit_entries(app, **filters):
    """Stored audit entries matching the given column values."""
    from kneecare.models.audit_log import AuditLog

    with app.state.session_factory() as db:
        query = db.query(AuditLog)
        for column, value in filters.items():
            query = query.filter(getattr(AuditLog, column) == value)
        return query.order_by(AuditLog.id).all()
