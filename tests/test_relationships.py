"""
Doctor-patient relationship registry tests.
"""
import pytest
from sqlalchemy.exc import IntegrityError

from conftest import API, audit_entries, register
from kneecare.core.exceptions import ConflictError
from kneecare.models.relationship import DoctorPatientRelation
from kneecare.models.user import User
from kneecare.services.relationship_service import ACTIVE_PAIR_MESSAGE, RelationshipRegistry


def test_doctor_establishes_relationship_with_all_permissions(client, doctor, patient):
    doctor_user, doctor_headers = doctor
    patient_user, _ = patient

    response = client.post(
        f"{API}/relationships/", json={"patient_id": patient_user["id"]}, headers=doctor_headers
    )

    assert response.status_code == 201
    body = response.json()
    assert body["doctor_id"] == doctor_user["id"]
    assert body["patient_id"] == patient_user["id"]
    assert body["is_active"] is True
    assert body["relationship_type"] == "primary_care"
    assert all(body["permissions"].values())


def test_second_active_relationship_is_a_conflict(client, doctor, patient, relationship):
    _, doctor_headers = doctor
    patient_user, _ = patient

    response = client.post(
        f"{API}/relationships/", json={"patient_id": patient_user["id"]}, headers=doctor_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "conflict"


def test_patient_cannot_establish_relationship(client, doctor, patient):
    doctor_user, _ = doctor
    patient_user, patient_headers = patient

    response = client.post(
        f"{API}/relationships/",
        json={"doctor_id": doctor_user["id"], "patient_id": patient_user["id"]},
        headers=patient_headers,
    )

    assert response.status_code == 403


def test_doctor_cannot_establish_for_another_doctor(client, doctor, stranger_doctor, patient):
    _, doctor_headers = doctor
    stranger_user, _ = stranger_doctor
    patient_user, _ = patient

    response = client.post(
        f"{API}/relationships/",
        json={"doctor_id": stranger_user["id"], "patient_id": patient_user["id"]},
        headers=doctor_headers,
    )

    assert response.status_code == 403


def test_wrong_roles_are_invalid_references(client, admin, doctor, patient, other_patient):
    _, admin_headers = admin
    doctor_user, _ = doctor
    patient_user, _ = patient
    other_user, _ = other_patient

    response = client.post(
        f"{API}/relationships/",
        json={"doctor_id": other_user["id"], "patient_id": patient_user["id"]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_reference"
    assert response.json()["message"] == "Invalid doctor ID"

    response = client.post(
        f"{API}/relationships/",
        json={"doctor_id": doctor_user["id"], "patient_id": doctor_user["id"]},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid patient ID"


def test_end_is_idempotent_and_frees_the_slot(client, app, doctor, patient, relationship):
    _, doctor_headers = doctor
    patient_user, _ = patient
    url = f"{API}/relationships/{relationship['id']}"

    first = client.delete(url, headers=doctor_headers)
    assert first.status_code == 200
    assert first.json()["is_active"] is False
    assert first.json()["end_date"] is not None

    second = client.delete(url, headers=doctor_headers)
    assert second.status_code == 200
    assert second.json()["end_date"] == first.json()["end_date"]

    recreated = client.post(
        f"{API}/relationships/", json={"patient_id": patient_user["id"]}, headers=doctor_headers
    )
    assert recreated.status_code == 201
    assert recreated.json()["id"] != relationship["id"]

    ended = audit_entries(app, action="relationship_ended")
    assert len(ended) == 2


def test_patient_cannot_end_relationship(client, patient, relationship):
    _, patient_headers = patient
    response = client.delete(f"{API}/relationships/{relationship['id']}", headers=patient_headers)
    assert response.status_code == 403


def test_update_merges_permissions(client, doctor, relationship):
    _, doctor_headers = doctor

    response = client.put(
        f"{API}/relationships/{relationship['id']}",
        json={"permissions": {"view_predictions": False}, "notes": "follow-up"},
        headers=doctor_headers,
    )

    assert response.status_code == 200
    permissions = response.json()["permissions"]
    assert permissions["view_predictions"] is False
    assert permissions["view_activity_data"] is True
    assert response.json()["notes"] == "follow-up"


def test_update_cannot_change_parties(client, doctor, relationship):
    _, doctor_headers = doctor
    response = client.put(
        f"{API}/relationships/{relationship['id']}",
        json={"patient_id": 12345},
        headers=doctor_headers,
    )
    assert response.status_code == 400


def test_unrelated_user_gets_not_found(client, other_patient, relationship):
    _, other_headers = other_patient
    response = client.get(f"{API}/relationships/{relationship['id']}", headers=other_headers)
    assert response.status_code == 404


def test_listing_is_role_scoped(client, admin, doctor, patient, other_patient, relationship):
    _, admin_headers = admin
    _, doctor_headers = doctor
    _, patient_headers = patient
    _, other_headers = other_patient

    assert client.get(f"{API}/relationships/", headers=admin_headers).json()["total"] == 1
    assert client.get(f"{API}/relationships/", headers=doctor_headers).json()["total"] == 1
    assert client.get(f"{API}/relationships/", headers=patient_headers).json()["total"] == 1
    assert client.get(f"{API}/relationships/", headers=other_headers).json()["total"] == 0


def test_permissions_lookup(client, doctor, patient, other_patient, relationship):
    doctor_user, doctor_headers = doctor
    patient_user, patient_headers = patient
    _, other_headers = other_patient
    url = f"{API}/relationships/permissions/{doctor_user['id']}/{patient_user['id']}"

    response = client.get(url, headers=patient_headers)
    assert response.status_code == 200
    assert response.json()["relationship_id"] == relationship["id"]

    assert client.get(url, headers=other_headers).status_code == 403


def test_permanent_delete_is_admin_only(client, admin, doctor, relationship):
    _, admin_headers = admin
    _, doctor_headers = doctor
    url = f"{API}/relationships/{relationship['id']}/permanent"

    assert client.delete(url, headers=doctor_headers).status_code == 403
    assert client.delete(url, headers=admin_headers).status_code == 200
    assert client.get(f"{API}/relationships/{relationship['id']}", headers=admin_headers).status_code == 404


def test_database_rejects_two_active_rows_for_one_pair(client, app, doctor, patient):
    doctor_user, _ = doctor
    patient_user, _ = patient

    with app.state.session_factory() as db:
        db.add(DoctorPatientRelation(doctor_id=doctor_user["id"], patient_id=patient_user["id"], is_active=True))
        db.commit()
        db.add(DoctorPatientRelation(doctor_id=doctor_user["id"], patient_id=patient_user["id"], is_active=True))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

        # Ended rows do not count
        db.add(DoctorPatientRelation(doctor_id=doctor_user["id"], patient_id=patient_user["id"], is_active=False))
        db.commit()


def test_doctor_lists_patients_and_patient_lists_doctors(client, doctor, patient, relationship):
    doctor_user, doctor_headers = doctor
    patient_user, patient_headers = patient

    patients = client.get(f"{API}/users/me/patients", headers=doctor_headers)
    assert [p["id"] for p in patients.json()["items"]] == [patient_user["id"]]

    doctors = client.get(f"{API}/users/me/doctors", headers=patient_headers)
    assert [d["id"] for d in doctors.json()] == [doctor_user["id"]]


def test_registering_second_doctor_with_same_license_conflicts(client, doctor):
    payload = {
        "email": "dup@example.com",
        "password": "secret123",
        "first_name": "Dup",
        "last_name": "Doctor",
        "role": "doctor",
        "doctor_info": {"license_number": "LIC-doc", "specialization": "Orthopedics"},
    }
    response = client.post(f"{API}/auth/register", json=payload)
    assert response.status_code == 400
    assert response.json()["error"] == "conflict"


def test_register_helper_creates_distinct_doctors(client):
    first, _ = register(client, "d1@example.com", role="doctor")
    second, _ = register(client, "d2@example.com", role="doctor")
    assert first["license_number"] != second["license_number"]


def test_lost_race_for_active_slot_is_a_conflict(client, app, doctor, patient, monkeypatch):
    """Another request commits the pair between the existence check and our commit."""
    doctor_user, _ = doctor
    patient_user, _ = patient

    with app.state.session_factory() as db:
        db.add(DoctorPatientRelation(doctor_id=doctor_user["id"], patient_id=patient_user["id"], is_active=True))
        db.commit()

        registry = RelationshipRegistry(db)
        monkeypatch.setattr(registry, "find_active", lambda doctor_id, patient_id: None)
        actor = db.get(User, doctor_user["id"])

        with pytest.raises(ConflictError) as excinfo:
            registry.establish(actor, doctor_user["id"], patient_user["id"])
        assert excinfo.value.message == ACTIVE_PAIR_MESSAGE

        # The session is usable again after the rollback
        assert db.query(DoctorPatientRelation).filter(DoctorPatientRelation.is_active.is_(True)).count() == 1
