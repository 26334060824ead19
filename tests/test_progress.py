"""
Progress reports and disease progression.
"""
import io

import pytest
from PIL import Image

from conftest import API, audit_entries

PERIOD = {"start_date": "2024-03-01T00:00:00Z", "end_date": "2024-03-31T23:59:59Z"}


@pytest.fixture
def logged_month(client, patient):
    """A month of activity, weight and dose logs for ``patient``."""
    _, headers = patient
    for date, steps in (("2024-03-02T09:00:00Z", 4000), ("2024-03-20T09:00:00Z", 6000), ("2024-04-05T09:00:00Z", 20000)):
        assert client.post(f"{API}/activity/", json={"date": date, "steps": steps}, headers=headers).status_code == 201
    for measured_at, weight in (("2024-03-01T08:00:00Z", 80.0), ("2024-03-28T08:00:00Z", 78.4)):
        response = client.post(f"{API}/weight/", json={"weight_kg": weight, "measured_at": measured_at}, headers=headers)
        assert response.status_code == 201

    reminder = client.post(f"{API}/medications/", json={
        "medication_name": "Ibuprofen", "dosage": "200mg", "frequency": "daily",
        "time_slots": ["08:00"], "start_date": "2024-03-01T00:00:00Z",
    }, headers=headers).json()
    for date, taken in (("2024-03-03T08:00:00Z", False), ("2024-03-25T08:00:00Z", True)):
        response = client.post(
            f"{API}/medications/{reminder['id']}/doses", json={"taken": taken, "date": date}, headers=headers
        )
        assert response.status_code == 201


def _generate(client, headers, user_id, report_type="monthly", **extra):
    payload = dict(PERIOD, user_id=user_id, report_type=report_type)
    payload.update(extra)
    return client.post(f"{API}/progress/reports/generate", json=payload, headers=headers)


# ── Reports ──────────────────────────────────────────────────────────

def test_report_is_computed_from_the_period(client, app, doctor, patient, relationship, logged_month):
    doctor_user, doctor_headers = doctor
    patient_user, _ = patient

    response = _generate(client, doctor_headers, patient_user["id"], symptoms={"pain_score": 8})

    assert response.status_code == 201, response.text
    report = response.json()
    assert report["generated_by"] == "doctor"
    assert report["generated_by_id"] == doctor_user["id"]
    metrics = report["metrics"]
    # The April log falls outside the period
    assert metrics["activity"]["average_steps"] == 5000
    assert metrics["activity"]["improvement"] == 50.0
    assert metrics["weight"] == {"weight_change": -1.6, "bmi_change": -0.6, "trend": "losing"}
    assert metrics["adherence"]["average"] == 50
    assert metrics["adherence"]["trend"] == "improving"
    assert "High reported pain score of 8/10" in report["insights"]["concerns"]
    assert "Lost 1.6 kg" in report["insights"]["achievements"]

    entries = audit_entries(app, action="progress_report_generated")
    assert len(entries) == 1
    assert entries[0].entity == "progressReports"
    assert entries[0].details == {"user_id": patient_user["id"], "report_type": "monthly"}


def test_admin_report_is_marked_manual(client, admin, patient):
    _, admin_headers = admin
    patient_user, _ = patient
    report = _generate(client, admin_headers, patient_user["id"], report_type="weekly").json()
    assert report["generated_by"] == "manual"
    assert report["insights"]["concerns"] == ["No activity was logged in this period"]


def test_generation_is_restricted(client, doctor, stranger_doctor, patient, relationship):
    doctor_user, doctor_headers = doctor
    _, stranger_headers = stranger_doctor
    patient_user, patient_headers = patient

    assert _generate(client, patient_headers, patient_user["id"]).status_code == 403
    assert _generate(client, stranger_headers, patient_user["id"]).status_code == 403

    not_a_patient = _generate(client, doctor_headers, doctor_user["id"])
    assert not_a_patient.status_code == 400
    assert not_a_patient.json()["message"] == "Invalid patient ID"

    backwards = _generate(
        client, doctor_headers, patient_user["id"],
        start_date="2024-03-31T00:00:00Z", end_date="2024-03-01T00:00:00Z",
    )
    assert backwards.status_code == 400
    assert backwards.json()["errors"][0]["field"] == "end_date"

    assert _generate(client, doctor_headers, patient_user["id"], report_type="yearly").status_code == 400


def test_listing_is_role_scoped(client, admin, doctor, stranger_doctor, patient, other_patient, relationship):
    _, admin_headers = admin
    _, doctor_headers = doctor
    _, stranger_headers = stranger_doctor
    patient_user, patient_headers = patient
    other_user, other_headers = other_patient

    _generate(client, doctor_headers, patient_user["id"])
    _generate(client, admin_headers, other_user["id"], report_type="weekly")

    assert client.get(f"{API}/progress/", headers=patient_headers).json()["total"] == 1
    assert client.get(f"{API}/progress/", headers=doctor_headers).json()["total"] == 1
    assert client.get(f"{API}/progress/", headers=stranger_headers).json()["total"] == 0
    assert client.get(f"{API}/progress/", headers=admin_headers).json()["total"] == 2
    assert client.get(f"{API}/progress/", params={"report_type": "weekly"}, headers=admin_headers).json()["total"] == 1

    url = f"{API}/progress/reports/{patient_user['id']}"
    assert client.get(url, params={"report_type": "monthly"}, headers=doctor_headers).json()["total"] == 1
    assert client.get(url, params={"report_type": "weekly"}, headers=doctor_headers).json()["total"] == 0
    assert client.get(url, headers=other_headers).status_code == 403
    assert client.get(url, headers=stranger_headers).status_code == 403


def test_single_report_and_admin_delete(client, app, admin, doctor, patient, other_patient, relationship):
    _, admin_headers = admin
    _, doctor_headers = doctor
    patient_user, patient_headers = patient
    _, other_headers = other_patient
    report = _generate(client, doctor_headers, patient_user["id"]).json()
    url = f"{API}/progress/reports/single/{report['id']}"

    assert client.get(url, headers=patient_headers).json()["id"] == report["id"]
    assert client.get(url, headers=other_headers).status_code == 404

    assert client.delete(f"{API}/progress/reports/{report['id']}", headers=doctor_headers).status_code == 403
    assert client.delete(f"{API}/progress/reports/{report['id']}", headers=admin_headers).status_code == 200
    assert client.get(url, headers=patient_headers).status_code == 404
    assert len(audit_entries(app, action="progress_report_deleted")) == 1


# ── Disease progression ──────────────────────────────────────────────

def _predict(client, headers, patient_id, kl_grade):
    buffer = io.BytesIO()
    Image.new("L", (32, 32), color=100).save(buffer, format="PNG")
    image = client.post(
        f"{API}/xrays/upload",
        files={"file": ("knee.png", buffer.getvalue(), "image/png")},
        data={"user_id": str(patient_id)},
        headers=headers,
    ).json()
    response = client.post(f"{API}/predictions/", json={
        "xray_image_id": image["id"], "oa_status": "OA", "kl_grade": kl_grade, "confidence": 0.8,
    }, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_predictions_build_the_grade_history(client, doctor, patient, relationship):
    _, doctor_headers = doctor
    patient_user, patient_headers = patient
    progression_url = f"{API}/progress/progression/{patient_user['id']}"
    analytics_url = f"{API}/progress/analytics/{patient_user['id']}"

    missing = client.get(progression_url, headers=patient_headers)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Disease progression data not found"
    assert client.get(analytics_url, headers=patient_headers).json()["has_data"] is False

    first = _predict(client, doctor_headers, patient_user["id"], 2)
    second = _predict(client, doctor_headers, patient_user["id"], 3)

    progression = client.get(progression_url, headers=patient_headers).json()
    assert [entry["grade"] for entry in progression["kl_grade_history"]] == [2, 3]
    assert [entry["prediction_id"] for entry in progression["kl_grade_history"]] == [first["id"], second["id"]]
    assert progression["progression"]["current_grade"] == 3
    assert progression["trend"] == "worsening"

    analytics = client.get(analytics_url, headers=doctor_headers).json()
    assert analytics["has_data"] is True
    assert analytics["total_predictions"] == 2
    assert analytics["current_grade"] == 3
    assert analytics["risk_level"] == "high"
    assert analytics["trend"] == "worsening"
    assert analytics["timespan"] is not None


def test_clinician_updates_progression(client, app, doctor, patient, relationship):
    _, doctor_headers = doctor
    patient_user, patient_headers = patient
    _predict(client, doctor_headers, patient_user["id"], 3)
    url = f"{API}/progress/progression/{patient_user['id']}"

    update = {
        "progression": {"rate_of_progression": "moderate", "projected_grade": {"grade": 4, "time_frame": "2 years"}},
        "risk_factors": {"modifiable": ["obesity"], "current": {"bmi": 31.2}},
    }
    assert client.put(url, json=update, headers=patient_headers).status_code == 403

    response = client.put(url, json=update, headers=doctor_headers)
    assert response.status_code == 200, response.text
    body = response.json()
    # Grade history survives a details update
    assert body["progression"]["current_grade"] == 3
    assert body["progression"]["rate_of_progression"] == "moderate"
    assert body["risk_factors"]["modifiable"] == ["obesity"]

    analytics = client.get(f"{API}/progress/analytics/{patient_user['id']}", headers=patient_headers).json()
    assert analytics["projected_grade"] == {"grade": 4, "time_frame": "2 years"}

    entries = audit_entries(app, action="disease_progression_updated")
    assert len(entries) == 1
    assert entries[0].changes["progression"]["rate_of_progression"] == "moderate"


def test_update_creates_missing_progression(client, admin, doctor, other_patient):
    _, admin_headers = admin
    doctor_user, _ = doctor
    other_user, _ = other_patient

    response = client.put(
        f"{API}/progress/progression/{other_user['id']}",
        json={"risk_factors": {"non_modifiable": ["age"]}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["kl_grade_history"] == []
    assert response.json()["trend"] == "insufficient_data"

    not_a_patient = client.put(
        f"{API}/progress/progression/{doctor_user['id']}", json={"risk_factors": {}}, headers=admin_headers
    )
    assert not_a_patient.status_code == 400


def test_only_admin_deletes_progression(client, app, admin, doctor, patient, relationship):
    _, admin_headers = admin
    _, doctor_headers = doctor
    patient_user, patient_headers = patient
    _predict(client, doctor_headers, patient_user["id"], 1)
    url = f"{API}/progress/progression/{patient_user['id']}"

    assert client.delete(url, headers=doctor_headers).status_code == 403
    assert client.delete(url, headers=admin_headers).status_code == 200
    assert client.get(url, headers=patient_headers).status_code == 404
    assert client.delete(url, headers=admin_headers).status_code == 404
    assert len(audit_entries(app, action="disease_progression_deleted")) == 1


def test_progression_needs_prediction_permission(client, doctor, patient, relationship):
    _, doctor_headers = doctor
    patient_user, _ = patient
    _predict(client, doctor_headers, patient_user["id"], 2)
    client.put(
        f"{API}/relationships/{relationship['id']}",
        json={"permissions": {"view_predictions": False}},
        headers=doctor_headers,
    )

    assert client.get(f"{API}/progress/progression/{patient_user['id']}", headers=doctor_headers).status_code == 403
    assert client.get(f"{API}/progress/analytics/{patient_user['id']}", headers=doctor_headers).status_code == 403
