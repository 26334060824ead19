"""
Identity and credential store tests.
"""
from datetime import timedelta

from conftest import API, PASSWORD, audit_entries, auth_headers, register
from kneecare.core.security import create_access_token, verify_token


def test_register_returns_token_and_profile(client):
    user, headers = register(client, "new@example.com")
    assert user["role"] == "patient"
    assert user["email"] == "new@example.com"
    assert "hashed_password" not in user

    me = client.get(f"{API}/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["id"] == user["id"]


def test_register_stores_medical_info(client):
    user, _ = register(
        client, "med@example.com",
        medical_info={"height_cm": 165, "blood_type": "O+", "allergies": ["penicillin"]},
    )
    assert user["height_cm"] == 165
    assert user["blood_type"] == "O+"
    assert user["allergies"] == ["penicillin"]


def test_duplicate_email_is_a_conflict(client, patient):
    response = client.post(f"{API}/auth/register", json={
        "email": "PAT@example.com", "password": PASSWORD, "first_name": "A", "last_name": "B",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "conflict"


def test_short_password_is_rejected_with_field_errors(client):
    response = client.post(f"{API}/auth/register", json={
        "email": "short@example.com", "password": "123", "first_name": "A", "last_name": "B",
    })
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_error"
    assert body["errors"][0]["field"] == "password"


def test_admin_registration_needs_secret(client):
    response = client.post(f"{API}/auth/register", json={
        "email": "boss@example.com", "password": PASSWORD, "first_name": "A", "last_name": "B",
        "role": "admin", "admin_secret": "wrong",
    })
    assert response.status_code == 403


def test_doctor_registration_needs_license_and_specialization(client):
    response = client.post(f"{API}/auth/register", json={
        "email": "nolicense@example.com", "password": PASSWORD, "first_name": "A", "last_name": "B",
        "role": "doctor",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_login_success_is_audited(client, app, patient):
    patient_user, _ = patient
    response = client.post(f"{API}/auth/login", json={"email": "pat@example.com", "password": PASSWORD})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["last_login"] is not None

    logins = audit_entries(app, action="user_login")
    assert [entry.actor_id for entry in logins] == [patient_user["id"]]


def test_login_failures_are_indistinguishable(client, patient):
    wrong_password = client.post(f"{API}/auth/login", json={"email": "pat@example.com", "password": "nope123"})
    unknown_email = client.post(f"{API}/auth/login", json={"email": "ghost@example.com", "password": "nope123"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json()["message"] == unknown_email.json()["message"] == "Invalid credentials"


class SpyContext:
    """Wraps a CryptContext and counts dummy verifications."""

    def __init__(self, context):
        self.context = context
        self.dummy_calls = 0

    def dummy_verify(self):
        self.dummy_calls += 1
        return self.context.dummy_verify()

    def __getattr__(self, name):
        return getattr(self.context, name)


def test_unknown_email_still_runs_a_hash_check(client, app, patient):
    spy = SpyContext(app.state.pwd_context)
    app.state.pwd_context = spy

    unknown = client.post(f"{API}/auth/login", json={"email": "ghost@example.com", "password": "nope123"})
    assert unknown.status_code == 401
    assert spy.dummy_calls == 1

    # A known account takes the real verification path instead
    wrong = client.post(f"{API}/auth/login", json={"email": "pat@example.com", "password": "nope123"})
    assert wrong.status_code == 401
    assert spy.dummy_calls == 1


def test_deactivated_user_cannot_log_in_or_use_token(client, admin, patient):
    _, admin_headers = admin
    patient_user, patient_headers = patient

    assert client.delete(f"{API}/users/{patient_user['id']}", headers=admin_headers).status_code == 200

    assert client.get(f"{API}/auth/me", headers=patient_headers).status_code == 401
    response = client.post(f"{API}/auth/login", json={"email": "pat@example.com", "password": PASSWORD})
    assert response.status_code == 401


def test_missing_and_malformed_tokens(client):
    assert client.get(f"{API}/auth/me").status_code == 401
    assert client.get(f"{API}/auth/me", headers=auth_headers("not-a-jwt")).status_code == 401


def test_expired_token_is_rejected(client, settings, patient):
    patient_user, _ = patient
    token = create_access_token(patient_user["id"], expires_delta=timedelta(minutes=-1), config=settings)
    assert verify_token(token, config=settings) is None
    assert client.get(f"{API}/auth/me", headers=auth_headers(token)).status_code == 401


def test_token_for_unknown_user_is_rejected(client, settings):
    token = create_access_token(424242, config=settings)
    assert client.get(f"{API}/auth/me", headers=auth_headers(token)).status_code == 401


def test_change_password(client, patient):
    _, headers = patient
    wrong = client.put(
        f"{API}/auth/password", json={"current_password": "wrong-one", "new_password": "newpass1"}, headers=headers
    )
    assert wrong.status_code == 401

    ok = client.put(
        f"{API}/auth/password", json={"current_password": PASSWORD, "new_password": "newpass1"}, headers=headers
    )
    assert ok.status_code == 200
    login = client.post(f"{API}/auth/login", json={"email": "pat@example.com", "password": "newpass1"})
    assert login.status_code == 200


def test_logout_is_audited(client, app, patient):
    _, headers = patient
    assert client.post(f"{API}/auth/logout", headers=headers).status_code == 200
    assert len(audit_entries(app, action="user_logout")) == 1


def test_patient_cannot_escalate_own_role(client, patient):
    patient_user, headers = patient
    response = client.put(
        f"{API}/users/{patient_user['id']}",
        json={"role": "admin", "first_name": "Renamed"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["role"] == "patient"
    assert response.json()["first_name"] == "Renamed"


def test_admin_creates_user_without_secret(client, admin):
    _, admin_headers = admin
    response = client.post(f"{API}/users/", json={
        "email": "staff@example.com", "password": PASSWORD, "first_name": "S", "last_name": "T", "role": "admin",
    }, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["role"] == "admin"


def test_user_profiles_are_hidden_from_unrelated_patients(client, patient, other_patient):
    patient_user, _ = patient
    _, other_headers = other_patient
    response = client.get(f"{API}/users/{patient_user['id']}", headers=other_headers)
    assert response.status_code == 404
